"""Error definitions for the subtrans translator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .structures import TextAddress, TextUnit


class SubtransError(Exception):
    """Base exception for all custom errors."""


class ConfigurationError(SubtransError):
    """Raised when the configuration is missing or invalid."""


class TranslationProviderConfigurationError(ConfigurationError):
    """Raised when the translation provider is misconfigured."""


class TranslationProviderError(SubtransError):
    """Raised when the translation provider fails to translate a batch."""


class UnsupportedFileTypeError(SubtransError):
    """Raised when a given file extension is not supported."""


class SubtitleFormatError(SubtransError):
    """Raised when a subtitle file cannot be parsed."""


class OverwriteRefusedError(SubtransError):
    """Raised when the output would overwrite the input document."""


class InvalidAddressError(SubtransError):
    """Raised when a resume address cannot be parsed."""


class AddressNotFoundError(SubtransError):
    """Raised when a resume address matches no extracted text unit."""

    def __init__(self, address: "TextAddress") -> None:
        super().__init__(f"Index {address} not found in input file.")
        self.address = address


class PersistenceError(SubtransError):
    """Raised when a subtitle document cannot be written."""


class TranslationBatchError(SubtransError):
    """Raised when a batch fails; carries everything needed to resume."""

    def __init__(
        self,
        *,
        batch_number: int,
        completed_items: int,
        first_failed: "TextUnit",
        cause: Exception,
        persist_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            f"Batch {batch_number} failed: {cause} "
            f"(completed {completed_items} items, first failed at {first_failed.address})"
        )
        self.batch_number = batch_number
        self.completed_items = completed_items
        self.first_failed = first_failed
        self.cause = cause
        self.persist_error = persist_error
