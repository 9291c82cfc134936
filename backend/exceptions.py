"""Error types shared by the salary service and its client."""
from typing import Optional


class SalaryServiceError(Exception):
    """Base class for errors surfaced by the salary service."""


class ConfigurationError(SalaryServiceError):
    """A required credential or setting is missing."""

    def __init__(self, setting: str):
        self.setting = setting
        super().__init__(f"{setting} environment variable not set")


class UpstreamRejectedError(SalaryServiceError):
    """An upstream service answered with a non-success status."""

    def __init__(self, service: str, status_code: int, body: str):
        self.service = service
        self.status_code = status_code
        self.body = body
        super().__init__(f"{service} API error: {status_code} - {body}")


class ExtractionError(SalaryServiceError):
    """Job data could not be extracted from the posting URL."""

    def __init__(self, reason: str):
        super().__init__(f"Failed to extract job data: {reason}")


class PayloadError(SalaryServiceError):
    """A completion payload could not be interpreted as a salary estimate."""


class ClientRequestError(SalaryServiceError):
    """The salary API rejected a client request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
