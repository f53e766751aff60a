"""Error types raised by the PicRate services.

Each carries the HTTP status the API answers with.
"""


class PicRateError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PicRateError):
    """Missing or malformed input (upload fields, image bytes, score)."""
    status_code = 400


class NotFoundError(PicRateError):
    status_code = 404


class UpstreamError(PicRateError):
    """The rating service failed or is not configured. Not retried."""
    status_code = 500


class StorageError(PicRateError):
    status_code = 500
