"""Test fixtures for wiki store tests.

This module provides sample data for:
- Page inputs and stored frontmatter documents
- YAML configuration files for every backend
"""

from .sample_configs import (
    CONFIG_BLOB_INDEX_HTTP,
    CONFIG_BLOB_INDEX_LOCAL,
    CONFIG_INVALID_YAML,
    CONFIG_NOT_A_DICT,
    CONFIG_REVISION_GITHUB,
    CONFIG_TABLE,
    CONFIG_UNKNOWN_FIELD,
)
from .sample_pages import (
    DOCUMENT_BAD_HEADER_LINE,
    DOCUMENT_MISSING_CLOSING_SENTINEL,
    DOCUMENT_WITHOUT_SLUG,
    SAMPLE_CONTENT,
    SAMPLE_DOCUMENT,
    getting_started,
    page_data,
)

__all__ = [
    "CONFIG_BLOB_INDEX_HTTP",
    "CONFIG_BLOB_INDEX_LOCAL",
    "CONFIG_INVALID_YAML",
    "CONFIG_NOT_A_DICT",
    "CONFIG_REVISION_GITHUB",
    "CONFIG_TABLE",
    "CONFIG_UNKNOWN_FIELD",
    "DOCUMENT_BAD_HEADER_LINE",
    "DOCUMENT_MISSING_CLOSING_SENTINEL",
    "DOCUMENT_WITHOUT_SLUG",
    "SAMPLE_CONTENT",
    "SAMPLE_DOCUMENT",
    "getting_started",
    "page_data",
]
