"""Tests for the migration registry."""

import sqlite3

import pytest

from wins.exceptions import MigrationError
from wins.logging import get_config, read_jsonl
from wins.persistence.migrations import (
    MARKER_TABLE,
    MigrationRegistry,
    apply_pending,
    load_migrations,
    split_statements,
)
from wins.persistence.models import Migration
from wins.persistence.repository import WinRepository


def table_names(repo: WinRepository) -> set[str]:
    rows = repo.conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}


def index_names(repo: WinRepository) -> set[str]:
    rows = repo.conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'").fetchall()
    return {row[0] for row in rows}


@pytest.fixture
def fresh_repo(db_path):
    repository = WinRepository(db_path)
    yield repository
    repository.close()


class TestLoadMigrations:
    """Tests for loading the shipped scripts."""

    def test_shipped_migrations_in_order(self):
        migrations = load_migrations()
        assert [m.version for m in migrations] == [1, 2]
        assert migrations[0].name == "create_wins"
        assert "CREATE TABLE wins" in migrations[0].sql

    def test_ignores_unrecognized_files(self, tmp_path):
        (tmp_path / "0001_first.sql").write_text("CREATE TABLE a (x);")
        (tmp_path / "notes.sql").write_text("-- scratch")
        (tmp_path / "README.md").write_text("hi")

        migrations = load_migrations(tmp_path)
        assert [m.label for m in migrations] == ["0001_first"]


class TestSplitStatements:
    """Tests for splitting scripts into statements."""

    def test_multiple_statements(self):
        sql = "CREATE TABLE a (x);\nCREATE TABLE b (y);\n"
        assert split_statements(sql) == ["CREATE TABLE a (x);", "CREATE TABLE b (y);"]

    def test_multiline_statement(self):
        sql = "CREATE TABLE a (\n    x INTEGER,\n    y TEXT\n);\n"
        assert split_statements(sql) == ["CREATE TABLE a (\n    x INTEGER,\n    y TEXT\n);"]

    def test_trailing_comment_dropped(self):
        sql = "CREATE TABLE a (x);\n-- done\n"
        assert split_statements(sql) == ["CREATE TABLE a (x);"]

    def test_missing_semicolon_kept(self):
        assert split_statements("CREATE TABLE a (x)") == ["CREATE TABLE a (x)"]


class TestRegistryValidation:
    """Tests for migration list validation."""

    def test_rejects_duplicate_versions(self):
        with pytest.raises(MigrationError) as exc_info:
            MigrationRegistry([
                Migration(version=1, name="a", sql="SELECT 1;"),
                Migration(version=1, name="b", sql="SELECT 1;"),
            ])
        assert exc_info.value.version == 1

    def test_rejects_descending_versions(self):
        with pytest.raises(MigrationError):
            MigrationRegistry([
                Migration(version=2, name="a", sql="SELECT 1;"),
                Migration(version=1, name="b", sql="SELECT 1;"),
            ])

    def test_latest_version(self):
        assert MigrationRegistry().latest_version == 2
        assert MigrationRegistry([]).latest_version == 0


class TestApply:
    """Tests for applying migrations."""

    def test_fresh_store(self, fresh_repo):
        """A fresh store gets every shipped step."""
        registry = MigrationRegistry()

        assert registry.apply(fresh_repo) == 2
        assert {"wins", MARKER_TABLE} <= table_names(fresh_repo)
        assert "idx_wins_created_at" in index_names(fresh_repo)
        assert registry.current_version(fresh_repo) == 2

    def test_idempotent(self, fresh_repo):
        """Running twice applies nothing the second time."""
        registry = MigrationRegistry()
        registry.apply(fresh_repo)

        assert registry.apply(fresh_repo) == 0
        assert len(registry.applied(fresh_repo)) == 2

    def test_idempotent_across_connections(self, db_path):
        with WinRepository(db_path) as first:
            assert MigrationRegistry().apply(first) == 2
        with WinRepository(db_path) as second:
            assert MigrationRegistry().apply(second) == 0

    def test_applies_only_new_steps(self, fresh_repo):
        base = load_migrations()
        MigrationRegistry(base[:1]).apply(fresh_repo)

        assert MigrationRegistry(base).apply(fresh_repo) == 1
        assert [row.version for row in MigrationRegistry(base).applied(fresh_repo)] == [1, 2]

    def test_marker_records_checksum(self, fresh_repo):
        registry = MigrationRegistry()
        registry.apply(fresh_repo)

        applied = registry.applied(fresh_repo)
        assert [row.checksum for row in applied] == [m.checksum for m in registry.migrations]
        assert all(row.applied_at.endswith("Z") for row in applied)

    def test_failed_step_rolls_back(self, fresh_repo):
        """A step failing mid-way leaves neither its DDL nor its marker."""
        migrations = load_migrations() + [
            Migration(
                version=3,
                name="broken",
                sql="CREATE TABLE streaks (id INTEGER);\nCREATE TABLE oops (;\n",
            )
        ]

        with pytest.raises(MigrationError) as exc_info:
            MigrationRegistry(migrations).apply(fresh_repo)

        err = exc_info.value
        assert err.version == 3
        assert err.name == "broken"
        assert isinstance(err.cause, sqlite3.Error)
        assert "streaks" not in table_names(fresh_repo)
        assert MigrationRegistry(migrations).current_version(fresh_repo) == 2

    def test_failed_step_is_retried_next_run(self, fresh_repo):
        broken = Migration(version=3, name="streaks", sql="CREATE TABLE streaks (;")
        fixed = Migration(version=3, name="streaks", sql="CREATE TABLE streaks (id INTEGER);")

        with pytest.raises(MigrationError):
            MigrationRegistry(load_migrations() + [broken]).apply(fresh_repo)

        assert MigrationRegistry(load_migrations() + [fixed]).apply(fresh_repo) == 1
        assert "streaks" in table_names(fresh_repo)

    def test_checksum_mismatch(self, fresh_repo):
        original = [Migration(version=1, name="a", sql="CREATE TABLE a (x);")]
        edited = [Migration(version=1, name="a", sql="CREATE TABLE a (x, y);")]
        MigrationRegistry(original).apply(fresh_repo)

        with pytest.raises(MigrationError, match="Checksum mismatch"):
            MigrationRegistry(edited).apply(fresh_repo)

    def test_unknown_applied_version(self, fresh_repo):
        MigrationRegistry().apply(fresh_repo)

        with pytest.raises(MigrationError, match="unknown to this build"):
            MigrationRegistry(load_migrations()[:1]).apply(fresh_repo)

    def test_read_only_pending_creates_nothing(self, db_path):
        sqlite3.connect(db_path).close()

        with WinRepository(db_path, read_only=True) as reader:
            assert len(MigrationRegistry().pending(reader)) == 2
            assert MigrationRegistry().current_version(reader) == 0
            assert MARKER_TABLE not in table_names(reader)

    def test_read_only_sees_applied_steps(self, fresh_repo, db_path):
        MigrationRegistry().apply(fresh_repo)
        fresh_repo.close()

        with WinRepository(db_path, read_only=True) as reader:
            assert MigrationRegistry().pending(reader) == []

    def test_never_touches_win_rows(self, repo):
        repo.insert_win("Kept")
        MigrationRegistry().apply(repo)
        assert [r.title for r in repo.list_wins()] == ["Kept"]

    def test_logs_each_step(self, fresh_repo):
        MigrationRegistry().apply(fresh_repo)

        entries = read_jsonl(get_config().migration_log_path)
        assert [e["version"] for e in entries] == [1, 2]
        assert all(e["success"] for e in entries)


class TestApplyPending:
    """Tests for the async entry point."""

    @pytest.mark.asyncio
    async def test_apply_pending(self, store):
        assert await apply_pending(store) == 2
        assert await apply_pending(store) == 0

    @pytest.mark.asyncio
    async def test_apply_pending_error(self, store):
        bad = [Migration(version=1, name="bad", sql="CREATE TABLE (;")]
        with pytest.raises(MigrationError):
            await apply_pending(store, bad)
