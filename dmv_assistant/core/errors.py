class AppError(Exception):
    """Base app exception."""


class ValidationError(AppError):
    """Malformed caller input (missing fields, empty or oversized upload)."""


class NotFoundError(AppError):
    pass


class UnsupportedFileTypeError(AppError):
    def __init__(self, detected: str) -> None:
        super().__init__(f"Unsupported file type: {detected or 'unknown'}")
        self.detected = detected


class ExtractionFailedError(AppError):
    pass


class ExternalServiceError(AppError):
    pass


class ClassificationUnavailableError(ExternalServiceError):
    """The classification service could not produce a verdict. Worth retrying."""


class RepositoryError(AppError):
    pass


class ConcurrentUpdateError(RepositoryError):
    pass


class ConfigurationError(AppError):
    pass
