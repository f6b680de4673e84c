"""Relevance scoring and snippet extraction for wiki search.

Scores are summed field matches (case-insensitive substring):
    - title match: 10
    - each matching tag: 5
    - excerpt match: 3

Results are ordered by score descending, ties broken by slug ascending so the
ordering never depends on backend iteration order.
"""

from typing import Iterable, List

from .models import Page, SearchResult

TITLE_WEIGHT = 10
TAG_WEIGHT = 5
EXCERPT_WEIGHT = 3

# Characters of context kept on each side of a match
SNIPPET_CONTEXT = 50
ELLIPSIS = "..."

MAX_RESULTS = 50


class SearchRanker:
    """Scores pages against a free-text query and builds result snippets."""

    @staticmethod
    def score(page: Page, query: str) -> int:
        """Compute the relevance score of a page for a query.

        Args:
            page: Page to score (only title, tags and excerpt are inspected)
            query: Free-text query

        Returns:
            Non-negative relevance score (0 when nothing matches)
        """
        needle = (query or "").strip().lower()
        if not needle:
            return 0

        score = 0
        if needle in (page.title or "").lower():
            score += TITLE_WEIGHT
        score += TAG_WEIGHT * sum(1 for tag in page.tags if needle in tag.lower())
        if needle in (page.excerpt or "").lower():
            score += EXCERPT_WEIGHT
        return score

    @staticmethod
    def snippet(text: str, query: str) -> str:
        """Extract the context around the first case-insensitive match.

        Args:
            text: Text to search in
            query: Free-text query

        Returns:
            Up to SNIPPET_CONTEXT characters before and after the match,
            wrapped in ellipsis markers, or "" when the query is not found

        Example:
            >>> SearchRanker.snippet("Hello world", "world")
            '...Hello world...'
        """
        needle = (query or "").strip()
        if not text or not needle:
            return ""

        index = text.lower().find(needle.lower())
        if index == -1:
            return ""

        start = max(0, index - SNIPPET_CONTEXT)
        end = min(len(text), index + len(needle) + SNIPPET_CONTEXT)
        return f"{ELLIPSIS}{text[start:end]}{ELLIPSIS}"

    @classmethod
    def matched_content(cls, page: Page, query: str) -> str:
        """Pick the best snippet for a hit: content, excerpt, title, then tags."""
        for text in (page.content, page.excerpt):
            snippet = cls.snippet(text, query)
            if snippet:
                return snippet

        needle = query.strip().lower()
        if needle in (page.title or "").lower():
            return page.title

        matched_tags = [tag for tag in page.tags if needle in tag.lower()]
        if matched_tags:
            return ", ".join(matched_tags)

        return (page.excerpt or "")[:100]

    @classmethod
    def rank(
        cls,
        pages: Iterable[Page],
        query: str,
        limit: int = MAX_RESULTS,
    ) -> List[SearchResult]:
        """Score, filter and order pages for a query.

        Unpublished pages and pages scoring 0 are dropped.

        Args:
            pages: Candidate pages
            query: Free-text query
            limit: Maximum number of results

        Returns:
            SearchResults ordered by score descending, then slug ascending
        """
        if not (query or "").strip():
            return []

        results: List[SearchResult] = []
        for page in pages:
            if not page.is_published:
                continue
            score = cls.score(page, query)
            if score <= 0:
                continue
            results.append(
                SearchResult(
                    page=page,
                    relevance_score=score,
                    matched_content=cls.matched_content(page, query),
                )
            )

        results.sort(key=lambda r: (-r.relevance_score, r.page.slug))
        return results[:limit]
