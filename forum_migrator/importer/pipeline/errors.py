"""Exception types raised by the bulk import pipeline."""

from __future__ import annotations

from typing import Any


class ImporterError(RuntimeError):
    """Base class for importer failures that should stop the current operation."""


class DuplicateMappingError(ImporterError):
    """Raised when an original identifier is mapped to two different target identifiers."""

    def __init__(self, entity_type: str, original_id: str, existing_target_id: int, new_target_id: int) -> None:
        super().__init__(
            f"{entity_type} '{original_id}' is already mapped to {existing_target_id}; "
            f"refusing to remap it to {new_target_id}."
        )
        self.entity_type = entity_type
        self.original_id = original_id
        self.existing_target_id = existing_target_id
        self.new_target_id = new_target_id


class BulkInsertError(ImporterError):
    """Raised when a whole batch could not be written through the bulk-insert channel."""

    def __init__(self, table: str, first_row: Any, cause: BaseException) -> None:
        super().__init__(f"Bulk insert into '{table}' failed: {cause}")
        self.table = table
        self.first_row = first_row


class ConversionError(ImporterError):
    """Raised by markup converter plugins that cannot convert a post."""


class ConverterLoadError(ImporterError):
    """Raised when the configured markup converter cannot be imported."""


class SiteDefaultsError(ImporterError):
    """Raised when the target-site defaults profile cannot be loaded or validated."""
