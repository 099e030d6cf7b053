from __future__ import annotations


class DocmarkError(Exception):
    """Base error. `status_code` is what the API layer responds with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputValidationError(DocmarkError):
    """Missing credential or input, wrong MIME type, oversize upload. Raised before any remote call."""

    status_code = 400


class RemoteCapabilityError(DocmarkError):
    """Non-success response (or transport failure) from the OCR, translation or storage provider."""

    status_code = 502

    def __init__(self, capability: str, message: str):
        super().__init__(f"{capability} failed: {message}")
        self.capability = capability


class PartialContentError(DocmarkError):
    """Translation returned a different number of fragments than pages were sent."""

    status_code = 502

    def __init__(self, expected: int, received: int):
        super().__init__(f"Translation returned {received} fragments for {expected} pages")
        self.expected = expected
        self.received = received


class ArchiveBuildError(DocmarkError):
    status_code = 500


class ConfigurationError(DocmarkError):
    status_code = 500
