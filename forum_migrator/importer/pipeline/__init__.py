"""Importer pipeline: mapping store, id allocation, naming, markup and batch loading."""

from __future__ import annotations

from .batch_loader import BatchLoader, EntitySpec, LoadSummary
from .channel import BulkInsertChannel
from .charset import CHARSET_MAP, normalize_text, resolve_charset
from .engine import MigrationEngine
from .errors import (
    BulkInsertError,
    ConversionError,
    ConverterLoadError,
    DuplicateMappingError,
    ImporterError,
    SiteDefaultsError,
)
from .mapping_store import PRIVATE_OFFSET, MappingStore
from .markup import MarkupTransformer, TransformResult, fancy_title, load_converter
from .names import NameDeduplicator, fix_name, next_string, random_email, random_username, slugify
from .post_numbers import PostNumberIndex, fix_highest_post_numbers
from .sequences import IdAllocator

__all__ = [
    "BatchLoader",
    "BulkInsertChannel",
    "BulkInsertError",
    "CHARSET_MAP",
    "ConversionError",
    "ConverterLoadError",
    "DuplicateMappingError",
    "EntitySpec",
    "IdAllocator",
    "ImporterError",
    "LoadSummary",
    "MappingStore",
    "MarkupTransformer",
    "MigrationEngine",
    "NameDeduplicator",
    "PRIVATE_OFFSET",
    "PostNumberIndex",
    "SiteDefaultsError",
    "TransformResult",
    "fancy_title",
    "fix_highest_post_numbers",
    "fix_name",
    "load_converter",
    "next_string",
    "normalize_text",
    "random_email",
    "random_username",
    "resolve_charset",
    "slugify",
]
