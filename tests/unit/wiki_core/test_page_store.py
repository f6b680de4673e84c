"""Unit tests for wiki_core.page_store module.

Covers filter normalization (ListQuery), page construction and patch
merging, and the StoreResult boundary of PageStore using a stub backend
whose hooks are MagicMocks.
"""

from unittest.mock import MagicMock

import pytest

from src.wiki_core.errors import (
    AuthorizationError,
    BackendError,
    PageNotFoundError,
    ValidationError,
)
from src.wiki_core.identity import StaticIdentityProvider
from src.wiki_core.models import (
    CreatePageData,
    Identity,
    Page,
    UpdatePageData,
    WikiFilters,
    WikiStats,
)
from src.wiki_core.page_store import (
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    ListQuery,
    PageStore,
    build_new_page,
    merge_update,
)

ADA = Identity(id="u-ada", display_name="Ada", roles=frozenset({"admin"}))
GRACE = Identity(id="u-grace", display_name="Grace")


class StubStore(PageStore):
    """PageStore whose hooks delegate to a MagicMock."""

    backend_name = "stub"

    def __init__(self, identity_provider=None):
        super().__init__(identity_provider or StaticIdentityProvider(ADA))
        self.hooks = MagicMock()

    def _create_page(self, data):
        return self.hooks.create_page(data)

    def _get_page(self, page_id):
        return self.hooks.get_page(page_id)

    def _get_page_by_slug(self, slug):
        return self.hooks.get_page_by_slug(slug)

    def _update_page(self, page_id, patch):
        return self.hooks.update_page(page_id, patch)

    def _delete_page(self, page_id):
        return self.hooks.delete_page(page_id)

    def _list_pages(self, query):
        return self.hooks.list_pages(query)

    def _search_pages(self, query):
        return self.hooks.search_pages(query)

    def _get_page_versions(self, page_id):
        return self.hooks.get_page_versions(page_id)

    def _get_categories(self):
        return self.hooks.get_categories()

    def _get_stats(self):
        return self.hooks.get_stats()


def _page(slug, **kwargs):
    return Page(id=slug, slug=slug, title=kwargs.pop("title", slug.title()), **kwargs)


class TestListQueryFromFilters:
    """Test cases for filter normalization."""

    def test_defaults(self):
        query = ListQuery.from_filters(None)

        assert query.page == 1
        assert query.limit == DEFAULT_PAGE_LIMIT
        assert query.sort_field == "created_at"
        assert query.descending is True

    @pytest.mark.parametrize("limit,expected", [(0, 1), (-5, 1), (1, 1), (50, 50), (500, MAX_PAGE_LIMIT)])
    def test_limit_is_clamped(self, limit, expected):
        assert ListQuery.from_filters(WikiFilters(limit=limit)).limit == expected

    @pytest.mark.parametrize("page", [0, -3])
    def test_page_below_one_is_one(self, page):
        assert ListQuery.from_filters(WikiFilters(page=page)).page == 1

    @pytest.mark.parametrize("sort_by,field", [
        ("createdAt", "created_at"),
        ("created", "created_at"),
        ("updatedAt", "updated_at"),
        ("updated", "updated_at"),
        ("title", "title"),
        ("version", "version"),
        ("bogus", "created_at"),
    ])
    def test_sort_fields(self, sort_by, field):
        """Unknown sort keys fall back to creation time."""
        assert ListQuery.from_filters(WikiFilters(sort_by=sort_by)).sort_field == field

    @pytest.mark.parametrize("order,descending", [("asc", False), ("ASC", False), ("desc", True), ("sideways", True)])
    def test_sort_order(self, order, descending):
        assert ListQuery.from_filters(WikiFilters(sort_order=order)).descending is descending

    def test_blank_search_is_dropped(self):
        assert ListQuery.from_filters(WikiFilters(search="   ")).search is None

    def test_numeric_strings_are_accepted(self):
        query = ListQuery.from_filters(WikiFilters(page="2", limit="10"))
        assert (query.page, query.limit) == (2, 10)

    @pytest.mark.parametrize("filters, field", [
        (WikiFilters(page="two"), "page"),
        (WikiFilters(limit=[10]), "limit"),
    ])
    def test_non_numeric_values_are_rejected(self, filters, field):
        with pytest.raises(ValidationError) as exc_info:
            ListQuery.from_filters(filters)
        assert exc_info.value.field == field

    def test_offset(self):
        assert ListQuery.from_filters(WikiFilters(page=3, limit=10)).offset == 20

    def test_unsorted(self):
        query = ListQuery.from_filters(WikiFilters(page=2, sort_by="title"))
        reduced = query.unsorted()

        assert reduced.sort_field is None
        assert reduced.page == 2


class TestListQueryApply:
    """Test cases for in-memory filtering, sorting and pagination."""

    def test_filters(self):
        pages = [
            _page("a", category_id="ops", author_id="u1", tags=["radio"]),
            _page("b", category_id="ops", author_id="u2", is_published=False),
            _page("c", category_id="intro", author_id="u1"),
        ]

        assert [p.slug for p in ListQuery(category_id="ops").apply(pages)[0]] == ["a", "b"]
        assert ListQuery(author_id="u1").apply(pages)[1] == 2
        assert [p.slug for p in ListQuery(is_published=False).apply(pages)[0]] == ["b"]
        assert [p.slug for p in ListQuery(search="RADIO").apply(pages)[0]] == ["a"]
        assert [p.slug for p in ListQuery(search="c").apply(pages)[0]] == ["c"]

    def test_sort_with_slug_tie_break(self):
        pages = [
            _page("b", created_at="2024-01-01"),
            _page("a", created_at="2024-01-01"),
            _page("c", created_at="2024-02-01"),
        ]

        descending, _ = ListQuery().apply(pages)
        ascending, _ = ListQuery(descending=False).apply(pages)

        assert [p.slug for p in descending] == ["c", "a", "b"]
        assert [p.slug for p in ascending] == ["a", "b", "c"]

    def test_pagination_slice_and_total(self):
        pages = [_page(f"p{i:02d}", version=i) for i in range(25)]
        query = ListQuery(page=3, limit=10, sort_field="version", descending=False)

        items, total = query.apply(pages)

        assert total == 25
        assert [p.version for p in items] == [20, 21, 22, 23, 24]

    def test_unsorted_keeps_input_order(self):
        pages = [_page("b"), _page("a")]
        items, _ = ListQuery(sort_field=None).apply(pages)
        assert [p.slug for p in items] == ["b", "a"]


class TestBuildNewPage:
    """Test cases for build_new_page."""

    def test_builds_version_one(self):
        page = build_new_page(
            CreatePageData(title="  Getting Started ", content="Hello", tags=["a", "a", " b "]),
            ADA,
            page_id="p1",
            now="2024-01-01T00:00:00+00:00",
        )

        assert page.slug == "getting-started"
        assert page.title == "Getting Started"
        assert page.version == 1
        assert page.excerpt == "Hello"
        assert page.tags == ["a", "b"]
        assert page.author_id == page.last_edited_by == "u-ada"
        assert page.author_name == page.last_edited_by_name == "Ada"
        assert page.created_at == page.updated_at == "2024-01-01T00:00:00+00:00"
        assert page.is_published is True
        assert page.is_locked is False

    def test_empty_category_becomes_none(self):
        page = build_new_page(CreatePageData(title="A", content="B", category_id=""), ADA, "p1")
        assert page.category_id is None

    @pytest.mark.parametrize("title,content,field", [
        ("", "Body", "title"),
        ("   ", "Body", "title"),
        ("Title", "", "content"),
        ("Title", "  \n ", "content"),
    ])
    def test_requires_title_and_content(self, title, content, field):
        with pytest.raises(ValidationError) as exc_info:
            build_new_page(CreatePageData(title=title, content=content), ADA, "p1")
        assert exc_info.value.field == field

    def test_unsluggable_title(self):
        with pytest.raises(ValidationError):
            build_new_page(CreatePageData(title="???", content="Body"), ADA, "p1")


class TestMergeUpdate:
    """Test cases for merge_update."""

    @pytest.fixture
    def current(self):
        return build_new_page(
            CreatePageData(title="Getting Started", content="Hello", category_id="intro", tags=["a"]),
            ADA,
            page_id="p1",
            now="2024-01-01T00:00:00+00:00",
        )

    def test_content_change_bumps_version(self, current):
        updated, changed = merge_update(current, UpdatePageData(content="Hello world"), GRACE)

        assert changed is True
        assert updated.version == 2
        assert updated.content == "Hello world"
        assert updated.excerpt == "Hello world"
        assert updated.last_edited_by == "u-grace"
        assert updated.author_id == "u-ada"
        assert updated.created_at == current.created_at

    def test_title_change_keeps_slug(self, current):
        updated, changed = merge_update(current, UpdatePageData(title="Welcome Aboard"), GRACE)

        assert changed is True
        assert updated.title == "Welcome Aboard"
        assert updated.slug == "getting-started"
        assert updated.version == 2

    def test_metadata_only_keeps_version(self, current):
        updated, changed = merge_update(
            current,
            UpdatePageData(tags=["b"], is_locked=True, is_published=False, metadata={"k": 1}),
            GRACE,
            now="2024-02-01T00:00:00+00:00",
        )

        assert changed is False
        assert updated.version == 1
        assert updated.tags == ["b"]
        assert updated.is_locked is True
        assert updated.is_published is False
        assert updated.metadata == {"k": 1}
        assert updated.updated_at == "2024-02-01T00:00:00+00:00"

    def test_unchanged_content_is_not_a_content_change(self, current):
        updated, changed = merge_update(current, UpdatePageData(content="Hello", title="Getting Started"), GRACE)
        assert changed is False
        assert updated.version == 1

    def test_surrounding_blank_lines_are_not_a_content_change(self, current):
        updated, changed = merge_update(current, UpdatePageData(content="\nHello\r\n\n"), GRACE)
        assert changed is False
        assert updated.content == "Hello"

    def test_new_content_is_stored_without_surrounding_blank_lines(self, current):
        updated, changed = merge_update(current, UpdatePageData(content="Hello\n\nworld\n"), GRACE)
        assert changed is True
        assert updated.content == "Hello\n\nworld"

    def test_explicit_none_clears_category(self, current):
        updated, _ = merge_update(current, UpdatePageData(category_id=None), GRACE)
        assert updated.category_id is None

    def test_missing_fields_are_untouched(self, current):
        updated, _ = merge_update(current, UpdatePageData(), GRACE)
        assert updated.category_id == "intro"
        assert updated.tags == ["a"]

    @pytest.mark.parametrize("patch", [
        UpdatePageData(title=""),
        UpdatePageData(title="!!!"),
        UpdatePageData(content="   "),
        UpdatePageData(tags=["x,y"]),
    ])
    def test_invalid_patches(self, current, patch):
        with pytest.raises(ValidationError):
            merge_update(current, patch, GRACE)

    def test_current_page_is_not_mutated(self, current):
        merge_update(current, UpdatePageData(content="Changed"), GRACE)
        assert current.content == "Hello"
        assert current.version == 1


class TestStoreBoundary:
    """Public PageStore methods never raise."""

    def test_success_wraps_data(self):
        store = StubStore()
        store.hooks.get_page.return_value = _page("a")

        result = store.get_page("a")

        assert result.success is True
        assert result.data.slug == "a"

    def test_typed_error_becomes_failure(self):
        store = StubStore()
        store.hooks.get_page.side_effect = PageNotFoundError("a")

        result = store.get_page("a")

        assert result.success is False
        assert result.error_code == "NotFound"

    def test_unexpected_error_becomes_backend_error(self):
        store = StubStore()
        store.hooks.delete_page.side_effect = RuntimeError("disk on fire")

        result = store.delete_page("a")

        assert result.success is False
        assert result.error_code == "BackendError"
        assert "disk on fire" in result.error_message
        assert result.error.operation == "delete_page"

    def test_list_pages_builds_pagination(self):
        store = StubStore()
        store.hooks.list_pages.return_value = ([_page("a")], 21)

        result = store.list_pages(WikiFilters(page=2, limit=10))

        assert result.success is True
        assert result.pagination.current_page == 2
        assert result.pagination.total_pages == 3
        assert result.pagination.has_next is True
        assert result.pagination.has_prev is True

    def test_list_pages_rejects_bad_filters_without_raising(self):
        store = StubStore()

        result = store.list_pages(WikiFilters(page="two", limit="ten"))

        assert result.success is False
        assert result.error_code == "ValidationError"
        store.hooks.list_pages.assert_not_called()

    def test_list_pages_degrades_on_backend_error(self):
        store = StubStore()
        store.hooks.list_pages.side_effect = BackendError("stub", "list_pages", "down")

        result = store.list_pages()

        assert result.success is True
        assert result.data == []
        assert result.pagination.total_count == 0
        assert result.error_code == "BackendError"
        assert store.hooks.list_pages.call_count == 1

    def test_list_pages_retries_unsorted_once_on_schema_mismatch(self):
        store = StubStore()
        store.hooks.list_pages.side_effect = [
            BackendError("stub", "list_pages", "no such column: version", schema_mismatch=True),
            ([_page("a")], 1),
        ]

        result = store.list_pages(WikiFilters(sort_by="version"))

        assert result.success is True
        assert [p.slug for p in result.data] == ["a"]
        assert result.error is None
        retry_query = store.hooks.list_pages.call_args_list[1].args[0]
        assert retry_query.sort_field is None

    def test_list_pages_gives_up_after_one_retry(self):
        store = StubStore()
        mismatch = BackendError("stub", "list_pages", "no such table", schema_mismatch=True)
        store.hooks.list_pages.side_effect = [mismatch, mismatch, ([], 0)]

        result = store.list_pages()

        assert result.success is True
        assert result.data == []
        assert result.error is mismatch
        assert store.hooks.list_pages.call_count == 2

    def test_search_blank_query_skips_backend(self):
        store = StubStore()
        result = store.search_pages("   ")

        assert result.success is True
        assert result.data == []
        store.hooks.search_pages.assert_not_called()

    def test_search_strips_query(self):
        store = StubStore()
        store.hooks.search_pages.return_value = []
        store.search_pages("  hello ")
        store.hooks.search_pages.assert_called_once_with("hello")

    def test_search_degrades_on_error(self):
        store = StubStore()
        store.hooks.search_pages.side_effect = RuntimeError("boom")

        result = store.search_pages("hello")

        assert result.success is True
        assert result.data == []
        assert isinstance(result.error, BackendError)

    def test_stats_degrade_on_error(self):
        store = StubStore()
        store.hooks.get_stats.side_effect = BackendError("stub", "get_stats", "down")

        result = store.get_stats()

        assert result.success is True
        assert result.data == WikiStats()
        assert result.error_code == "BackendError"


class TestAuthorizationHelpers:
    """Test cases for _require_identity / _require_role."""

    def test_anonymous_is_rejected(self):
        store = StubStore(StaticIdentityProvider.anonymous())
        with pytest.raises(AuthorizationError) as exc_info:
            store._require_identity("create_page")
        assert exc_info.value.required_role is None

    def test_missing_role_is_rejected(self):
        store = StubStore(StaticIdentityProvider(GRACE))
        with pytest.raises(AuthorizationError) as exc_info:
            store._require_role("delete_page", "admin")
        assert exc_info.value.required_role == "admin"

    def test_member_passes(self):
        store = StubStore(StaticIdentityProvider(ADA))
        assert store._require_role("delete_page", "admin") is ADA
