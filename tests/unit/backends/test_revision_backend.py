"""Unit tests for backends.revision_backend module.

Runs against InMemoryRevisionRepository, which records every commit so the
commit messages and point-in-time reads can be asserted directly.
"""

import json
import logging

import pytest

from src.backends.revision_backend import (
    INDEX_FILE,
    _change_description,
    default_categories,
    parse_trailer,
    version_trailer,
)
from src.storage_clients.revision_repository import CommitAuthor
from src.wiki_core.identity import StaticIdentityProvider
from src.wiki_core.models import CreatePageData, UpdatePageData, WikiFilters
from src.wiki_core.version_history import VersionHistoryCapability
from tests.fixtures.sample_pages import SAMPLE_DOCUMENT
from tests.helpers.in_memory_repository import InMemoryRevisionRepository
from tests.helpers.store_builders import (
    ADMIN_ID,
    ADMIN_NAME,
    EDITOR_ID,
    build_revision_store,
    editor_provider,
)

PAGE_PATH = "wiki/getting-started.md"
INDEX_PATH = f"wiki/{INDEX_FILE}"


@pytest.fixture
def repo():
    return InMemoryRevisionRepository()


@pytest.fixture
def store(repo):
    return build_revision_store(repository=repo)


def _create(store, title="Getting Started", content="Hello", **kwargs):
    result = store.create_page(CreatePageData(title=title, content=content, **kwargs))
    assert result.success, result.error_message
    return result.data


def _update(store, page_id, **fields):
    result = store.update_page(page_id, UpdatePageData(**fields))
    assert result.success, result.error_message
    return result.data


class TestCommitMessages:
    """Test cases for trailer helpers."""

    def test_version_trailer(self):
        assert version_trailer("getting-started", 3) == "Page getting-started: version 3"

    def test_parse_trailer_matches_slug(self):
        message = "Update wiki page: A - typo\n\nPage a: version 4\n"
        assert parse_trailer(message, "a") == 4
        assert parse_trailer(message, "b") is None
        assert parse_trailer("Manual edit", "a") is None

    @pytest.mark.parametrize("message, expected", [
        ("Create wiki page: A\n\nPage a: version 1", "Initial version"),
        ("Update wiki page: A - Fix typo\n\nPage a: version 2", "Fix typo"),
        ("Update wiki page: A - Fix typo - intro\n\nChange: \"Fix typo - intro\"\nPage a: version 2", "Fix typo - intro"),
        ("Update wiki page: A - Line one\n\nChange: \"Line one\\nLine two\"\nPage a: version 2", "Line one\nLine two"),
        ("Manual edit\n\nbody", "Manual edit"),
        ("", ""),
    ])
    def test_change_description(self, message, expected):
        assert _change_description(message) == expected


class TestRevisionWrites:
    """Test cases for create/update/delete commits."""

    def test_create_commits_page_with_trailer(self, store, repo):
        page = _create(store)

        assert page.id == page.slug == "getting-started"
        assert repo.messages_for(PAGE_PATH) == [
            "Create wiki page: Getting Started\n\nPage getting-started: version 1"
        ]
        commit = repo.commits[0].info
        assert (commit.author_name, commit.author_email) == (ADMIN_NAME, ADMIN_ID)

    def test_create_writes_index_entry(self, store, repo):
        _create(store, metadata={"secret": "x"})

        index = json.loads(repo.files[INDEX_PATH])

        assert list(index) == ["getting-started"]
        assert index["getting-started"]["title"] == "Getting Started"
        assert "content" not in index["getting-started"]
        assert "metadata" not in index["getting-started"]
        assert repo.messages_for(INDEX_PATH) == ["Update wiki index: getting-started"]

    def test_round_trip_through_file(self, store):
        _create(store, tags=["intro"], metadata={"source": "import"})

        page = store.get_page("getting-started").data

        assert page.content == "Hello"
        assert page.tags == ["intro"]
        assert page.metadata == {"source": "import"}

    def test_duplicate_slug_conflicts(self, store):
        _create(store)
        assert store.create_page(CreatePageData(title="Getting  Started", content="x")).error_code == "Conflict"

    def test_update_commit_message(self, store, repo):
        _create(store)

        _update(store, "getting-started", content="Hello world", change_description="Fix typo")

        assert repo.messages_for(PAGE_PATH)[-1] == (
            "Update wiki page: Getting Started - Fix typo\n\n"
            "Change: \"Fix typo\"\n"
            "Page getting-started: version 2"
        )

    def test_update_default_description(self, store, repo):
        _create(store)
        _update(store, "getting-started", content="Hello world")
        assert "- Updated page\n" in repo.messages_for(PAGE_PATH)[-1]

    def test_update_by_editor(self, store, repo):
        _create(store)
        store._identity_provider = editor_provider()

        page = _update(store, "getting-started", content="Edited")

        assert page.last_edited_by == EDITOR_ID
        assert repo.commits[-2].info.author_email == EDITOR_ID

    def test_delete(self, store, repo):
        _create(store)

        assert store.delete_page("getting-started").success is True

        assert PAGE_PATH not in repo.files
        assert repo.messages_for(PAGE_PATH)[-1] == "Delete wiki page: getting-started"
        assert json.loads(repo.files[INDEX_PATH]) == {}
        assert store.get_page("getting-started").error_code == "NotFound"

    def test_anonymous_write_rejected(self, repo):
        store = build_revision_store(StaticIdentityProvider.anonymous(), repository=repo)

        assert store.create_page(CreatePageData(title="A", content="B")).error_code == "AuthorizationError"
        assert repo.commits == []

    def test_page_write_failure(self, store, repo):
        repo.fail_writes_to.add(PAGE_PATH)

        result = store.create_page(CreatePageData(title="Getting Started", content="Hello"))

        assert result.error_code == "BackendError"
        assert "rejected" in result.error_message


class TestRevisionReads:
    """Test cases for page lookups."""

    def test_invalid_slug_is_not_found(self, store, repo):
        assert store.get_page("../secrets").error_code == "NotFound"
        assert store.get_page_by_slug("Not A Slug").error_code == "NotFound"
        assert repo.read_at_calls == []

    def test_read_failure_is_backend_error(self, store, repo):
        _create(store)
        repo.fail_reads = True

        assert store.get_page("getting-started").error_code == "BackendError"

    def test_capability(self, store):
        assert store.version_history_capability == VersionHistoryCapability.LIMITED

    def test_close(self, store, repo):
        store.close()
        assert repo.closed is True


class TestRevisionHistory:
    """Test cases for LimitedVersionHistory."""

    def test_versions_from_commit_log(self, store):
        _create(store)
        _update(store, "getting-started", content="Hello world")

        versions = store.get_page_versions("getting-started").data

        assert [v.version for v in versions] == [2, 1]
        assert [v.content for v in versions] == ["Hello world", "Hello"]
        assert versions[0].change_description == "Updated page"
        assert versions[1].change_description == "Initial version"
        assert versions[1].author_id == ADMIN_ID

    @pytest.mark.parametrize("description", [
        "Fix typo - preflight section",
        "Reword intro\n\nAlso fix the \"Checklist\" link",
    ])
    def test_change_description_is_kept_whole(self, store, description):
        _create(store)
        _update(store, "getting-started", content="Hello world", change_description=description)

        versions = store.get_page_versions("getting-started").data

        assert versions[0].change_description == description

    def test_metadata_commits_are_collapsed(self, store, repo):
        _create(store)
        _update(store, "getting-started", content="Hello world")
        _update(store, "getting-started", is_locked=True)
        _update(store, "getting-started", tags=["intro"])

        versions = store.get_page_versions("getting-started").data
        v2_commits = [c.info.sha for c in repo.commits if c.path == PAGE_PATH][1:]

        assert [v.version for v in versions] == [2, 1]
        # Collapsed into the commit that introduced version 2
        assert versions[0].id == v2_commits[0]
        assert versions[0].content == "Hello world"

    def test_content_fetch_limit(self, repo):
        store = build_revision_store(repository=repo, content_fetch_limit=2)
        _create(store)
        for n in range(2, 5):
            _update(store, "getting-started", content=f"Hello {n}")

        versions = store.get_page_versions("getting-started").data

        assert [v.version for v in versions] == [4, 3, 2, 1]
        assert [v.content for v in versions] == ["Hello 4", "Hello 3", None, None]
        assert versions[2].title is None
        assert len(repo.read_at_calls) == 2

    def test_history_limit(self, repo):
        store = build_revision_store(repository=repo, history_limit=3)
        _create(store)
        for n in range(2, 6):
            _update(store, "getting-started", content=f"Hello {n}")

        assert [v.version for v in store.get_page_versions("getting-started").data] == [5, 4, 3]

    def test_commits_without_trailer_are_numbered_by_position(self, store, repo):
        _create(store)
        document = repo.files[PAGE_PATH].replace("Hello", "Edited by hand")
        repo.write_file(PAGE_PATH, document, "Manual edit", CommitAuthor("Linus", "u-linus"))

        versions = store.get_page_versions("getting-started").data

        assert [v.version for v in versions] == [2, 1]
        assert versions[0].change_description == "Manual edit"
        assert versions[0].author_id == "u-linus"
        assert versions[0].content == "Edited by hand"

    def test_recreated_page_does_not_inherit_history(self, store):
        _create(store)
        _update(store, "getting-started", content="Hello world")
        store.delete_page("getting-started")

        _create(store, content="Fresh start")
        versions = store.get_page_versions("getting-started").data

        assert [v.version for v in versions] == [1]
        assert versions[0].content == "Fresh start"

    def test_versions_of_missing_page(self, store):
        assert store.get_page_versions("nope").error_code == "NotFound"

    def test_append_and_delete_are_noops(self, store):
        assert store.history.delete_all("getting-started") == 0


class TestRevisionIndex:
    """The index document is reconciled with the page files on read."""

    def test_list_from_index(self, store):
        _create(store, "Bravo")
        _create(store, "Alpha", is_published=False)

        listing = store.list_pages(WikiFilters(sort_by="title", sort_order="asc"))

        assert [p.title for p in listing.data] == ["Alpha", "Bravo"]
        assert listing.data[0].content == ""
        assert listing.pagination.total_count == 2

    def test_page_missing_from_index_is_read_from_file(self, store, repo, caplog):
        _create(store, "Bravo")
        repo.files[PAGE_PATH] = SAMPLE_DOCUMENT

        with caplog.at_level(logging.INFO, logger="src.backends.revision_backend"):
            titles = sorted(p.title for p in store.list_pages().data)

        assert titles == ["Bravo", "Getting Started"]
        assert "missing from wiki index" in caplog.text

    def test_stale_index_entry_is_dropped(self, store, repo):
        _create(store, "Bravo")
        _create(store, "Charlie")
        del repo.files["wiki/charlie.md"]

        assert [p.title for p in store.list_pages().data] == ["Bravo"]

    def test_index_write_failure_does_not_fail_create(self, store, repo, caplog):
        repo.fail_writes_to.add(INDEX_PATH)

        with caplog.at_level(logging.WARNING, logger="src.backends.revision_backend"):
            result = store.create_page(CreatePageData(title="Getting Started", content="Hello"))

        assert result.success is True
        assert "index will be reconciled" in caplog.text
        assert [p.slug for p in store.list_pages().data] == ["getting-started"]

    def test_corrupt_index_is_rebuilt(self, store, repo):
        _create(store)
        repo.files[INDEX_PATH] = "{not json"

        assert [p.slug for p in store.list_pages().data] == ["getting-started"]

    @pytest.mark.parametrize("breakage", [
        lambda entry: entry.pop("id"),
        lambda entry: entry.update(slug="someone-else"),
        lambda entry: entry.update(version="two"),
        lambda entry: entry.update(tags=None),
    ])
    def test_malformed_index_entry_is_rebuilt_from_file(self, store, repo, caplog, breakage):
        _create(store, "Alpha")
        _create(store, "Bravo")
        index = json.loads(repo.files[INDEX_PATH])
        breakage(index["bravo"])
        repo.files[INDEX_PATH] = json.dumps(index)

        with caplog.at_level(logging.WARNING, logger="src.backends.revision_backend"):
            listing = store.list_pages(WikiFilters(sort_by="title", sort_order="asc"))

        assert listing.error is None
        assert [p.slug for p in listing.data] == ["alpha", "bravo"]
        assert "Malformed wiki index entry for 'bravo'" in caplog.text

    def test_non_object_index_entry_is_rebuilt_from_file(self, store, repo):
        _create(store, "Alpha")
        _create(store, "Bravo")
        index = json.loads(repo.files[INDEX_PATH])
        index["bravo"] = "bravo"
        repo.files[INDEX_PATH] = json.dumps(index)

        assert sorted(r.page.slug for r in store.search_pages("a").data) == ["alpha", "bravo"]
        assert store.get_stats().data.total_pages == 2

    def test_unreadable_page_file_is_skipped(self, store, repo):
        _create(store)
        repo.files["wiki/broken.md"] = "no frontmatter here"

        assert [p.slug for p in store.list_pages().data] == ["getting-started"]

    def test_search(self, store):
        _create(store, "Hello Pilots", "Intro")
        _create(store, "Weather", "Say hello to the forecast")

        results = store.search_pages("hello").data

        assert [r.page.slug for r in results] == ["hello-pilots", "weather"]

    def test_listing_degrades_when_repository_fails(self, store, repo):
        _create(store)
        repo.fail_reads = True

        listing = store.list_pages()

        assert listing.success is True
        assert listing.data == []
        assert listing.error_code == "BackendError"


class TestRevisionCategoriesAndStats:
    """Test cases for categories and stats."""

    def test_default_categories(self, store):
        categories = store.get_categories().data

        assert [c.slug for c in categories] == ["getting-started", "flight-operations"]
        assert categories[0].description == "Basic guides for new members"
        assert [c.slug for c in default_categories()] == [c.slug for c in categories]

    def test_categories_document(self, store, repo):
        repo.files["wiki/_categories.json"] = json.dumps([
            {"id": "c2", "name": "Ops", "slug": "ops", "order": 2},
            {"id": "c1", "name": "Intro", "slug": "intro", "order": 1, "moderators": ["u-ada"]},
            {"id": "c3", "name": "Old", "slug": "old", "order": 0, "isActive": False},
        ])

        categories = store.get_categories().data

        assert [c.slug for c in categories] == ["intro", "ops"]
        assert categories[0].moderators == ["u-ada"]

    def test_invalid_categories_document(self, store, repo):
        repo.files["wiki/_categories.json"] = "[oops"
        assert store.get_categories().error_code == "BackendError"

    def test_categories_file_is_not_a_page(self, store, repo):
        repo.files["wiki/_categories.json"] = "[]"
        _create(store)
        assert [p.slug for p in store.list_pages().data] == ["getting-started"]

    def test_stats(self, store):
        _create(store, "Alpha")
        _create(store, "Bravo")
        _create(store, "Draft", is_published=False)
        store._identity_provider = editor_provider()
        _update(store, "alpha", content="Edited")

        stats = store.get_stats().data

        assert stats.total_pages == 2
        assert stats.total_categories == 2
        assert stats.recent_pages[0].slug == "alpha"
        assert "draft" not in [p.slug for p in stats.recent_pages]
        assert [(c.author_id, c.edit_count) for c in stats.top_contributors] == [
            (ADMIN_ID, 3),
            (EDITOR_ID, 1),
        ]
