from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class InvalidInputError(ServiceError):
    """Malformed or missing fields, non-numeric amounts, unknown enum values."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class NotFoundError(ServiceError):
    """Referenced student, fee plan, course, batch or ledger entry does not exist."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConflictError(ServiceError):
    """Duplicate ledger entry, duplicate transaction id, or a concurrent write lost the race."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class StorageError(ServiceError):
    """Underlying persistence failure."""

    def __init__(self, message: str = "Storage failure") -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
