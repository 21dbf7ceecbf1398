"""
PdfBundler - Custom Exceptions Module

This module defines custom exception classes for specific error cases
in the PdfBundler application.
"""


class PdfBundlerError(Exception):
    """Base exception for all PdfBundler errors.

    All custom exceptions should inherit from this class to allow
    catching any PdfBundler-specific error.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional technical details for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class ValidationError(PdfBundlerError):
    """Raised when input validation fails."""

    def __init__(
        self,
        field: str,
        value: str | None = None,
        reason: str | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            field: Name of the field that failed validation
            value: Optional value that failed validation
            reason: Optional reason for the validation failure
        """
        self.field = field
        self.value = value
        self.reason = reason

        msg = f"Validation error for '{field}'"
        if reason:
            msg += f": {reason}"

        super().__init__(msg)


class ParseError(PdfBundlerError):
    """Raised when the document library cannot parse a byte stream."""

    def __init__(self, reason: str, lenient: bool = False) -> None:
        """Initialize the exception.

        Args:
            reason: Underlying parser message
            lenient: Whether the relaxed parser was in use
        """
        self.reason = reason
        self.lenient = lenient
        super().__init__(reason, details="lenient" if lenient else "strict")


class CopyError(PdfBundlerError):
    """Raised when a single page cannot be copied between documents."""

    def __init__(self, page_index: int, reason: str | None = None) -> None:
        """Initialize the exception.

        Args:
            page_index: 0-based index of the page in the source document
            reason: Optional underlying error message
        """
        self.page_index = page_index
        self.reason = reason

        msg = f"Failed to copy page {page_index + 1}"
        if reason:
            msg += f" - {reason}"

        super().__init__(msg, details=f"index={page_index}")


# Name used for per-page copy failures during reconstruction
PartialCopyError = CopyError


class SaveError(PdfBundlerError):
    """Raised when a document cannot be serialized."""

    def __init__(self, reason: str) -> None:
        """Initialize the exception.

        Args:
            reason: Underlying serializer message
        """
        self.reason = reason
        super().__init__(reason)


class OperationInProgressError(PdfBundlerError):
    """Raised when an operation is started while another one is running."""

    def __init__(self, operation: str) -> None:
        """Initialize the exception.

        Args:
            operation: Name of the operation that was refused
        """
        self.operation = operation
        super().__init__(f"Cannot start '{operation}': another operation is still running")


class RepairLimitReachedError(PdfBundlerError):
    """Raised when a repair is requested after all attempts were used."""

    def __init__(self, attempts: int) -> None:
        """Initialize the exception.

        Args:
            attempts: Number of repair runs already performed
        """
        self.attempts = attempts
        super().__init__(
            "All repair attempts have failed. "
            "The file may be too severely damaged to repair.",
            details=f"attempts={attempts}",
        )


class RepairAlreadySucceededError(PdfBundlerError):
    """Raised when a repair is requested after a successful one."""

    def __init__(self) -> None:
        super().__init__("The document has already been repaired")


# Exception hierarchy summary:
# PdfBundlerError (base)
# ├── ValidationError
# ├── ParseError
# ├── CopyError (PartialCopyError)
# ├── SaveError
# ├── OperationInProgressError
# ├── RepairLimitReachedError
# └── RepairAlreadySucceededError
