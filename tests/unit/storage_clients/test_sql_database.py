"""Unit tests for storage_clients.sql_database module."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.pool import StaticPool

from src.backends.sql_schema import Base
from src.storage_clients.sql_database import SqlDatabase


class TestSqlDatabase:
    """Test cases for engine setup and session handling."""

    @pytest.mark.parametrize("url", ["sqlite://", "sqlite:///:memory:"])
    def test_in_memory_sqlite_shares_one_connection(self, url):
        database = SqlDatabase(url)
        assert isinstance(database.engine.pool, StaticPool)

    def test_file_sqlite_uses_regular_pool(self, tmp_path):
        database = SqlDatabase(f"sqlite:///{tmp_path / 'wiki.db'}")
        assert not isinstance(database.engine.pool, StaticPool)
        database.dispose()

    def test_session_commits(self):
        database = SqlDatabase("sqlite://")
        with database.session() as s:
            s.execute(text("CREATE TABLE t (x INTEGER)"))
            s.execute(text("INSERT INTO t VALUES (1)"))

        with database.session() as s:
            assert s.execute(text("SELECT COUNT(*) FROM t")).scalar() == 1

    def test_session_rolls_back_on_error(self):
        database = SqlDatabase("sqlite://")
        with database.session() as s:
            s.execute(text("CREATE TABLE t (x INTEGER)"))

        with pytest.raises(RuntimeError):
            with database.session() as s:
                s.execute(text("INSERT INTO t VALUES (1)"))
                raise RuntimeError("abort")

        with database.session() as s:
            assert s.execute(text("SELECT COUNT(*) FROM t")).scalar() == 0

    def test_create_all_creates_wiki_tables(self):
        database = SqlDatabase("sqlite://")
        database.create_all(Base)

        with database.session() as s:
            names = {
                row[0]
                for row in s.execute(text("SELECT name FROM sqlite_master WHERE type = 'table'"))
            }

        assert {"wiki_pages", "wiki_index", "wiki_versions", "wiki_categories"} <= names

    def test_dispose_is_idempotent(self):
        database = SqlDatabase("sqlite://")
        database.dispose()
        database.dispose()


class TestErrorClassification:
    """Test cases for is_schema_mismatch and describe."""

    def _operational(self, message):
        return OperationalError("SELECT 1", {}, Exception(message))

    def test_missing_column_is_schema_mismatch(self):
        assert SqlDatabase.is_schema_mismatch(self._operational("no such column: version")) is True

    def test_locked_database_is_not_schema_mismatch(self):
        assert SqlDatabase.is_schema_mismatch(self._operational("database is locked")) is False

    def test_other_error_types(self):
        error = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        assert SqlDatabase.is_schema_mismatch(error) is False
        assert SqlDatabase.is_schema_mismatch(None) is False

    def test_describe_uses_driver_message(self):
        assert SqlDatabase.describe(self._operational("no such table: wiki_pages")) == "no such table: wiki_pages"
