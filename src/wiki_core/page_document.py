"""Conversion between Page objects and frontmatter documents.

Used by the backends that store full pages as text (blob-index blobs and
revision repository files). Page metadata, an open map, is carried as one
JSON-encoded string header so that the header stays flat.
"""

import json
from typing import Any, Dict, Optional

from .errors import FrontmatterFormatError
from .frontmatter_codec import FrontmatterCodec
from .models import Page, make_excerpt


def page_to_document(page: Page) -> str:
    header: Dict[str, Any] = {
        "title": page.title,
        "slug": page.slug,
        "categoryId": page.category_id,
        "tags": list(page.tags),
        "isPublished": page.is_published,
        "isLocked": page.is_locked,
        "authorId": page.author_id,
        "authorName": page.author_name,
        "lastEditedBy": page.last_edited_by,
        "lastEditedByName": page.last_edited_by_name,
        "version": page.version,
        "createdAt": page.created_at,
        "updatedAt": page.updated_at,
        "excerpt": page.excerpt,
        "id": page.id,
    }
    if page.metadata:
        header["metadata"] = json.dumps(page.metadata, sort_keys=True)
    return FrontmatterCodec.encode(header, page.content)


def page_from_document(text: str, page_id: Optional[str] = None) -> Page:
    """Decode a stored document back into a Page.

    Args:
        text: Frontmatter document
        page_id: Identifier to use when the document does not carry one

    Raises:
        FrontmatterFormatError: If the document is malformed or has no title/slug
    """
    header, content = FrontmatterCodec.decode(text)

    title = header.get("title")
    slug = header.get("slug")
    if not isinstance(title, str) or not isinstance(slug, str):
        raise FrontmatterFormatError("Document is missing its title or slug")

    metadata: Dict[str, Any] = {}
    raw_metadata = header.get("metadata")
    if raw_metadata:
        try:
            metadata = json.loads(raw_metadata) if isinstance(raw_metadata, str) else {}
        except json.JSONDecodeError as e:
            raise FrontmatterFormatError(f"Invalid metadata JSON: {e.msg}")

    version = header.get("version", 1)
    return Page(
        id=str(header.get("id") or page_id or slug),
        slug=slug,
        title=title,
        content=content,
        excerpt=str(header.get("excerpt", make_excerpt(content))),
        category_id=header.get("categoryId"),
        author_id=str(header.get("authorId", "")),
        author_name=str(header.get("authorName", "")),
        last_edited_by=str(header.get("lastEditedBy", "")),
        last_edited_by_name=str(header.get("lastEditedByName", "")),
        version=version if isinstance(version, int) else 1,
        is_published=header.get("isPublished", True) is not False,
        is_locked=header.get("isLocked", False) is True,
        tags=[str(tag) for tag in header.get("tags", [])],
        metadata=metadata if isinstance(metadata, dict) else {},
        created_at=str(header.get("createdAt", "")),
        updated_at=str(header.get("updatedAt", "")),
    )
