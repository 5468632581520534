"""
Service configuration, read from the environment.

All values have working defaults so the service starts with no env at all;
a value that is set but invalid stops startup with a ValueError.
"""
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_MAX_PAYLOAD_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_QUALITY = 80
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds


def _default_workers() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class Settings:
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
    default_quality: int = DEFAULT_QUALITY
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    worker_threads: int = field(default_factory=_default_workers)
    # jobs allowed to wait for a worker; None means 2x worker_threads
    max_queued_requests: Optional[int] = None
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_payload_bytes < 1:
            raise ValueError(f"MAX_PAYLOAD_BYTES must be positive, got {self.max_payload_bytes}")
        if not 1 <= self.default_quality <= 100:
            raise ValueError(f"DEFAULT_QUALITY must be in [1, 100], got {self.default_quality}")
        if self.request_timeout <= 0:
            raise ValueError(f"REQUEST_TIMEOUT_SECONDS must be positive, got {self.request_timeout}")
        if self.worker_threads < 1:
            raise ValueError(f"WORKER_THREADS must be at least 1, got {self.worker_threads}")
        if self.max_queued_requests is not None and self.max_queued_requests < 0:
            raise ValueError(f"MAX_QUEUED_REQUESTS cannot be negative, got {self.max_queued_requests}")

    @property
    def queue_depth(self) -> int:
        if self.max_queued_requests is None:
            return 2 * self.worker_threads
        return self.max_queued_requests

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        def get(name, convert, default):
            raw = env.get(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return convert(raw.strip())
            except ValueError:
                raise ValueError(f"Invalid value for {name}: {raw!r}")

        queued = get("MAX_QUEUED_REQUESTS", int, None)
        return cls(
            max_payload_bytes=get("MAX_PAYLOAD_BYTES", int, DEFAULT_MAX_PAYLOAD_BYTES),
            default_quality=get("DEFAULT_QUALITY", int, DEFAULT_QUALITY),
            request_timeout=get("REQUEST_TIMEOUT_SECONDS", float, DEFAULT_REQUEST_TIMEOUT),
            worker_threads=get("WORKER_THREADS", int, _default_workers()),
            max_queued_requests=queued,
            host=env.get("HOST", "0.0.0.0"),
            port=get("PORT", int, 8000),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
