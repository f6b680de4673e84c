"""Slug derivation from page titles.

This module converts wiki page titles to URL-safe slugs. A slug is the
human-readable address of a page and must be unique per backend instance.
"""

import re

from .errors import ValidationError


class SlugCodec:
    """Converts page titles to lowercase, hyphenated slugs.

    Conversion rules:
    - Title is lowercased
    - Characters outside [a-z0-9 -] are removed
    - Runs of spaces → single hyphen (-)
    - Runs of hyphens → single hyphen
    - Leading/trailing hyphens → trimmed

    Examples:
        - "Getting Started" → "getting-started"
        - "Q&A Session" → "qa-session"
        - "  API -- Reference  " → "api-reference"
    """

    _DISALLOWED = re.compile(r'[^a-z0-9 \-]')
    _WHITESPACE = re.compile(r'\s+')
    _HYPHENS = re.compile(r'-+')

    @classmethod
    def create_slug(cls, title: str) -> str:
        """Convert a page title to a slug.

        Args:
            title: The page title

        Returns:
            Slug containing only [a-z0-9-] with no leading/trailing hyphen

        Raises:
            ValidationError: If the title is empty or yields an empty slug

        Examples:
            >>> SlugCodec.create_slug("Getting Started")
            'getting-started'
            >>> SlugCodec.create_slug("Flight Ops: Checklists (v2)")
            'flight-ops-checklists-v2'
        """
        if title is None or not title.strip():
            raise ValidationError("Title cannot be empty", field="title")

        slug = title.lower()
        slug = cls._DISALLOWED.sub('', slug)
        slug = cls._WHITESPACE.sub('-', slug)
        slug = cls._HYPHENS.sub('-', slug)
        slug = slug.strip('-')

        if not slug:
            raise ValidationError(
                "Title must contain at least one alphanumeric character",
                field="title",
            )

        return slug

    @classmethod
    def is_valid_slug(cls, slug: str) -> bool:
        """Check whether a string already has slug form.

        Used to reject path-like page ids before they reach a file-backed store.
        """
        if not slug:
            return False
        return re.fullmatch(r'[a-z0-9]+(?:-[a-z0-9]+)*', slug) is not None


def create_slug(title: str) -> str:
    """Module-level shortcut for SlugCodec.create_slug."""
    return SlugCodec.create_slug(title)
