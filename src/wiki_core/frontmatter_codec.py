"""Frontmatter encoding and decoding for wiki page documents.

A wiki document is a plain-text file that starts with a key/value header
block between two ``---`` sentinel lines, followed by a blank line and the raw
page body:

    ---
    title: "Getting Started"
    slug: "getting-started"
    categoryId: null
    tags: ["intro","howto"]
    isPublished: true
    version: 3
    ---

    Page body...

The header is not YAML. Every line is ``key: value`` and values are coerced
by type-sniffing, so the format stays stable across every backend that stores
full documents (blob-index blobs and revision repository files).
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from .errors import FrontmatterFormatError

SENTINEL = "---"

# Header keys are always emitted in this order; absent values become null.
FIELD_ORDER = (
    "title",
    "slug",
    "categoryId",
    "tags",
    "isPublished",
    "isLocked",
    "authorId",
    "authorName",
    "lastEditedBy",
    "lastEditedByName",
    "version",
    "createdAt",
    "updatedAt",
    "excerpt",
)

_INTEGER = re.compile(r'-?\d+')


class FrontmatterCodec:
    """Encodes page metadata + body into one text blob and back.

    Encoding rules:
        - Strings: double-quoted, JSON escaped
        - Booleans: bare ``true`` / ``false``
        - Integers: bare digits
        - Lists of strings: inline JSON arrays
        - None / absent: ``null``

    Decoding rules (type-sniffing on the raw value):
        - ``"..."`` → str
        - ``true`` / ``false`` → bool
        - bare digits → int
        - ``[...]`` → list
        - ``null`` → key omitted from the result
        - anything else → raw string
    """

    @classmethod
    def encode(cls, metadata: Dict[str, Any], content: str) -> str:
        """Encode metadata and content into a frontmatter document.

        Args:
            metadata: Page metadata keyed by header name (camelCase)
            content: Raw page body

        Returns:
            Full document text

        Raises:
            ValueError: If a key cannot be represented on a header line
            TypeError: If a value has an unsupported type
        """
        keys: List[str] = list(FIELD_ORDER)
        keys.extend(k for k in metadata if k not in FIELD_ORDER)

        lines = [SENTINEL]
        for key in keys:
            cls._validate_key(key)
            lines.append(f"{key}: {cls._format_value(key, metadata.get(key))}")
        lines.append(SENTINEL)
        lines.append("")
        lines.append(content or "")

        return "\n".join(lines)

    @classmethod
    def decode(cls, text: str) -> Tuple[Dict[str, Any], str]:
        """Decode a frontmatter document into metadata and content.

        Args:
            text: Full document text

        Returns:
            Tuple of (metadata, content). Keys with a ``null`` value are
            omitted; content is trimmed of leading/trailing blank lines.

        Raises:
            FrontmatterFormatError: If a sentinel is missing or a header
                line cannot be parsed
        """
        if text is None:
            raise FrontmatterFormatError("Document is empty")

        lines = text.replace("\r\n", "\n").split("\n")

        if not lines or lines[0].strip() != SENTINEL:
            raise FrontmatterFormatError("Missing opening '---' sentinel line")

        closing_index: Optional[int] = None
        for index in range(1, len(lines)):
            if lines[index].strip() == SENTINEL:
                closing_index = index
                break

        if closing_index is None:
            raise FrontmatterFormatError("Missing closing '---' sentinel line")

        metadata: Dict[str, Any] = {}
        for line in lines[1:closing_index]:
            if not line.strip():
                continue
            if ":" not in line:
                raise FrontmatterFormatError("Header line has no key/value separator", line)

            key, raw_value = line.split(":", 1)
            key = key.strip()
            if not key:
                raise FrontmatterFormatError("Header line has an empty key", line)

            value = cls._coerce(raw_value.strip(), line)
            if value is None:
                metadata.pop(key, None)
                continue
            metadata[key] = value

        content = "\n".join(_trim_blank_lines(lines[closing_index + 1:]))
        return metadata, content

    @staticmethod
    def normalize_content(content: str) -> str:
        """Return content the way decode() hands it back.

        Line endings become ``\\n`` and leading/trailing blank lines are
        dropped, so a body survives encode/decode unchanged.
        """
        lines = content.replace("\r\n", "\n").split("\n")
        return "\n".join(_trim_blank_lines(lines))

    @staticmethod
    def _validate_key(key: str) -> None:
        if not key or ":" in key or "\n" in key or key.strip() != key:
            raise ValueError(f"Invalid frontmatter key: {key!r}")

    @staticmethod
    def _format_value(key: str, value: Any) -> str:
        if value is None:
            return "null"
        # bool before int: bool is a subclass of int
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str):
            return json.dumps(value, ensure_ascii=False)
        if isinstance(value, (list, tuple)):
            if not all(isinstance(item, str) for item in value):
                raise TypeError(f"Frontmatter array '{key}' must contain only strings")
            return json.dumps(list(value), ensure_ascii=False, separators=(",", ":"))
        raise TypeError(
            f"Unsupported frontmatter value type for '{key}': {type(value).__name__}"
        )

    @staticmethod
    def _coerce(raw: str, line: str) -> Any:
        if raw == "null":
            return None
        if raw == "true":
            return True
        if raw == "false":
            return False
        if _INTEGER.fullmatch(raw):
            return int(raw)
        if raw.startswith('"'):
            try:
                value = json.loads(raw)
            except json.JSONDecodeError as e:
                raise FrontmatterFormatError(f"Invalid quoted string: {e.msg}", line)
            if not isinstance(value, str):
                raise FrontmatterFormatError("Quoted value is not a string", line)
            return value
        if raw.startswith("["):
            try:
                value = json.loads(raw)
            except json.JSONDecodeError as e:
                raise FrontmatterFormatError(f"Invalid array: {e.msg}", line)
            if not isinstance(value, list):
                raise FrontmatterFormatError("Array value is not a JSON array", line)
            return value
        return raw


def _trim_blank_lines(lines: List[str]) -> List[str]:
    start = 0
    end = len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]
