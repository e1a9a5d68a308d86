class LibraryError(Exception):
    """Base exception for library errors. Carries the HTTP status it maps to."""

    status_code = 400

    def __init__(self, message: str = None):
        super().__init__(message or self.__doc__)
        self.message = message or self.__doc__

    def to_dict(self) -> dict:
        return {"message": self.message}


class NotFoundError(LibraryError):
    """Requested record does not exist."""

    status_code = 404


class ValidationError(LibraryError):
    """One or more fields are missing, malformed or out of range."""

    status_code = 422

    def __init__(self, errors: dict, message: str = None):
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> dict:
        return {"message": self.message, "errors": self.errors}


class DuplicateISBNError(LibraryError):
    """Book with this ISBN already exists."""


class DuplicateEmailError(LibraryError):
    """Email already registered."""


class DuplicateUsernameError(LibraryError):
    """Username already taken."""


class NoCopiesAvailableError(LibraryError):
    """No copies available for borrowing."""


class AlreadyBorrowedError(LibraryError):
    """You have already borrowed this book."""


class NoActiveBorrowError(LibraryError):
    """No active borrow record found for this book."""


class UpdateConflictError(LibraryError):
    """Book was modified concurrently, please retry."""

    status_code = 409


class StoreUnavailableError(LibraryError):
    """Database is unavailable."""

    status_code = 503


class PartialFailureError(LibraryError):
    """Only one side of a two-record update was applied.

    ``compensated`` tells whether the side that did succeed was rolled back.
    """

    status_code = 500

    def __init__(self, message: str, compensated: bool = False):
        super().__init__(message)
        self.compensated = compensated

    def to_dict(self) -> dict:
        return {"message": self.message, "compensated": self.compensated}
