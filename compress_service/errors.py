"""
Error taxonomy for the compression service.

Every failure a request can hit is a CompressionError subclass carrying the
HTTP status it maps to and a stable machine code. Client errors echo their
detail back to the caller; server errors only ever answer with a generic
message and keep the detail in the logs.
"""
from typing import Optional


class CompressionError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    message = "Internal server error"
    client_error = False

    def __init__(self, details: Optional[str] = None):
        super().__init__(details or self.message)
        self.details = details

    def to_response(self) -> dict:
        body = {"error": True, "message": self.message, "code": self.code}
        if self.client_error and self.details:
            body["details"] = self.details
        return body


class OversizedPayload(CompressionError):
    status_code = 413
    code = "PAYLOAD_TOO_LARGE"
    message = "Payload too large"
    client_error = True


class UnsupportedOutputFormat(CompressionError):
    status_code = 400
    code = "UNSUPPORTED_FORMAT"
    message = "Unsupported output format"
    client_error = True


class DecodeError(CompressionError):
    status_code = 422
    code = "DECODE_ERROR"
    message = "Invalid image data"
    client_error = True


class EncodeError(CompressionError):
    code = "ENCODE_ERROR"
    message = "Failed to encode image"


class CompressionTimeout(CompressionError):
    status_code = 503
    code = "TIMEOUT"
    message = "Compression timed out"


class ServiceBusy(CompressionError):
    status_code = 503
    code = "SERVICE_BUSY"
    message = "Service is busy, retry later"


class InternalError(CompressionError):
    pass
