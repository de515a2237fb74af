"""
Tests for the dialect-aware query executor (SQLite dry runs, plan analysis,
HTTP-API structural checks).
"""

import pytest

from querypilot.config.settings import DataSourceConfig, DataSourceType
from querypilot.sql.correction import SQLErrorType
from querypilot.sql.execution.executor import QueryExecutor, analyze_plan, join_warnings
from querypilot.utils.errors import DataSourceUnavailableError, UnsupportedDialectError


def _scalar(connections, sql):
    with connections.get_engine(1).connect() as conn:
        return conn.exec_driver_sql(sql).scalar()


@pytest.fixture
def executor(connections, app_settings) -> QueryExecutor:
    return QueryExecutor(connections, app_settings)


class TestReadStatements:
    """Read-only statements go through EXPLAIN"""

    def test_select_passes_with_scan_warning(self, executor):
        """A valid SELECT passes and reports the full scan"""
        result = executor.execute_probe("SELECT name FROM users", "sqlite", 1)

        assert result.ok
        assert result.error_category is None
        assert any("users" in w for w in result.warnings)

    def test_unknown_column(self, executor):
        """Engine errors come back classified with a hint"""
        result = executor.execute_probe("SELECT emial FROM users", "sqlite", 1)

        assert not result.ok
        assert result.error_category == SQLErrorType.UNKNOWN_COLUMN
        assert "emial" in result.hint

    def test_unknown_table(self, executor):
        """Missing tables map to unknown_table"""
        result = executor.execute_probe("SELECT id FROM userz", "sqlite", 1)

        assert not result.ok
        assert result.error_category == SQLErrorType.UNKNOWN_TABLE

    def test_literals_are_not_bind_markers(self, executor):
        """Colons and percent signs inside literals reach the engine untouched"""
        result = executor.execute_probe("SELECT name FROM users WHERE name LIKE '%a:b%'", "sqlite", 1)
        assert result.ok

    def test_multiple_statements_rejected(self, executor):
        """Exactly one statement may be checked"""
        result = executor.execute_probe("SELECT 1; SELECT 2", "sqlite", 1)

        assert not result.ok
        assert result.error_category == SQLErrorType.SYNTAX_ERROR


class TestWriteStatements:
    """Write statements run in a rolled-back transaction"""

    def test_update_is_rolled_back(self, executor, connections):
        """A scoped UPDATE passes and leaves the data untouched"""
        result = executor.execute_probe("UPDATE users SET name = 'Zed' WHERE id = 1", "sqlite", 1)

        assert result.ok
        assert _scalar(connections, "SELECT name FROM users WHERE id = 1") == "Alice Martin"

    def test_insert_is_rolled_back(self, executor, connections):
        """Rolled-back INSERTs never persist rows"""
        sql = "INSERT INTO orders (user_id, amount, status) VALUES (3, 5.0, 'pending')"
        result = executor.execute_probe(sql, "sqlite", 1)

        assert result.ok
        assert _scalar(connections, "SELECT COUNT(*) FROM orders") == 3

    def test_unsafe_write_never_runs(self, executor, connections):
        """Policy violations are refused before reaching the engine"""
        result = executor.execute_probe("DELETE FROM users", "sqlite", 1)

        assert not result.ok
        assert result.error_category == SQLErrorType.POLICY_VIOLATION
        assert _scalar(connections, "SELECT COUNT(*) FROM users") == 3

    def test_write_engine_error(self, executor):
        """Errors raised by the rolled-back statement are classified"""
        result = executor.execute_probe("UPDATE users SET nme = 'x' WHERE id = 1", "sqlite", 1)

        assert not result.ok
        assert result.error_category == SQLErrorType.UNKNOWN_COLUMN

    def test_vacuum_into_never_runs(self, executor, tmp_path):
        """Maintenance statements are refused and create no file"""
        target = tmp_path / "copy.db"
        result = executor.execute_probe(f"VACUUM INTO '{target}'", "sqlite", 1)

        assert not result.ok
        assert result.error_category == SQLErrorType.POLICY_VIOLATION
        assert not target.exists()

    def test_attach_never_runs(self, executor, tmp_path):
        """ATTACH is refused before it can create a database file"""
        target = tmp_path / "other.db"
        result = executor.execute_probe(f"ATTACH DATABASE '{target}' AS other", "sqlite", 1)

        assert not result.ok
        assert result.error_category == SQLErrorType.POLICY_VIOLATION
        assert not target.exists()

    def test_explain_analyze_delete_never_runs(self, executor, connections):
        """EXPLAIN ANALYZE over a write is refused, rows stay put"""
        result = executor.execute_probe("EXPLAIN ANALYZE DELETE FROM users WHERE id = 1", "sqlite", 1)

        assert not result.ok
        assert result.error_category == SQLErrorType.POLICY_VIOLATION
        assert _scalar(connections, "SELECT COUNT(*) FROM users") == 3


class TestDataSources:
    """Dialect dispatch and infrastructure failures"""

    def test_unsupported_dialect(self, executor):
        """Unknown dialects raise"""
        with pytest.raises(UnsupportedDialectError):
            executor.execute_probe("SELECT 1", "oracle", 1)

    def test_unreachable_database(self, executor, connections):
        """A refused connection is an infrastructure failure, not a failed check"""
        connections.register(
            DataSourceConfig(id=9, name="down", type=DataSourceType.MYSQL, host="127.0.0.1", port=1, database="x")
        )
        with pytest.raises(DataSourceUnavailableError):
            executor.execute_probe("SELECT 1", "mysql", 9)

    def test_api_get_passes_without_sending(self, executor):
        """GET commands pass the structural check"""
        result = executor.execute_probe("curl -s https://api.example.com/v1/users?limit=5", "api", None)

        assert result.ok
        assert "not sent" in result.warnings[0]

    def test_api_rejects_writes_and_bodies(self, executor):
        """Non-GET methods, bodies and other programs are refused"""
        post = executor.execute_probe("curl -X POST https://api.example.com/v1/users", "api", None)
        body = executor.execute_probe("curl -d '{\"a\": 1}' https://api.example.com/v1/users", "api", None)
        wget = executor.execute_probe("wget https://api.example.com/v1/users", "api", None)

        assert post.error_category == SQLErrorType.POLICY_VIOLATION
        assert body.error_category == SQLErrorType.POLICY_VIOLATION
        assert wget.error_category == SQLErrorType.POLICY_VIOLATION


class TestPlanAnalysis:
    """Test analyze_plan() and join_warnings()"""

    def test_mysql_full_scan(self):
        """type=ALL over many rows without a key warns twice"""
        rows = [{"table": "orders", "type": "ALL", "rows": 50000, "key": None}]
        warnings = analyze_plan("mysql", rows, 10000)

        assert len(warnings) == 2
        assert "Full table scan on 'orders'" in warnings[0]

    def test_mysql_index_lookup(self):
        """ref access with a key is quiet"""
        rows = [{"table": "orders", "type": "ref", "rows": 3, "key": "idx_user"}]
        assert analyze_plan("mysql", rows, 10000) == []

    def test_postgres_seq_scan(self):
        """Seq Scan lines are reported"""
        rows = [{"QUERY PLAN": "Seq Scan on orders  (cost=0.00..35.50 rows=2550 width=4)"}]
        warnings = analyze_plan("postgresql", rows, 10000)

        assert len(warnings) == 1
        assert "Seq Scan" in warnings[0]

    def test_sqlite_search_is_quiet(self):
        """Index searches produce no warning"""
        rows = [{"detail": "SEARCH users USING INTEGER PRIMARY KEY (rowid=?)"}]
        assert analyze_plan("sqlite", rows, 10000) == []

    def test_cross_join_heuristic(self):
        """JOIN without ON/USING is flagged, a proper join is not"""
        assert join_warnings("SELECT * FROM users JOIN orders")
        assert join_warnings("SELECT * FROM users JOIN orders ON orders.user_id = users.id") == []
