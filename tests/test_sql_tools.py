"""
Tests for the SQL family tools against the SQLite shop fixture.
"""

import json

import pytest
from langchain_core.messages import ToolMessage

from querypilot.tools import (
    GetTableSchemaTool,
    ListTablesTool,
    RunQuerySampleTool,
    SampleTableDataTool,
    SearchColumnValuesTool,
    ValidateSqlTool,
    ValidationVerdict,
)


class TestDiscoveryTools:
    """list_tables / get_table_schema / sample_table_data / search_column_values"""

    def test_list_tables(self, services):
        """Tables come back as a sorted JSON array"""
        output = ListTablesTool(services=services).invoke({"data_source_id": 1})
        assert json.loads(output) == ["orders", "users"]

    def test_schema_tags_sensitive_columns(self, services):
        """Password columns are tagged and a warning note is appended"""
        output = GetTableSchemaTool(services=services).invoke({"table_name": "users", "data_source_id": 1})

        assert "Table: users" in output
        assert "- id (INTEGER, PRI)" in output
        assert "- password (TEXT) [SENSITIVE]" in output
        assert "- name (TEXT)" in output
        assert "Note: never reference [SENSITIVE] columns" in output

    def test_schema_shows_foreign_keys(self, services):
        """Foreign keys are rendered as FK->table.column"""
        output = GetTableSchemaTool(services=services).invoke({"table_name": "orders", "data_source_id": 1})

        assert "user_id (INTEGER, FK->users.id)" in output
        assert "[SENSITIVE]" not in output

    def test_schema_unknown_table(self, services):
        """Missing tables are reported, not raised"""
        output = GetTableSchemaTool(services=services).invoke({"table_name": "invoices", "data_source_id": 1})
        assert output.startswith("Table 'invoices' not found.")

    def test_schema_rejects_bad_identifier(self, services):
        """Names outside the identifier pattern never reach the database"""
        output = GetTableSchemaTool(services=services).invoke({"table_name": "users; DROP", "data_source_id": 1})
        assert output == "Error: Invalid table or column name format."

    def test_sample_redacts_sensitive_values(self, services):
        """Sensitive values are replaced in sample rows"""
        output = SampleTableDataTool(services=services).invoke({"table_name": "users", "data_source_id": 1})
        rows = json.loads(output)

        assert len(rows) == 3
        assert all(row["password"] == "[HIDDEN-FOR-SECURITY]" for row in rows)
        assert "hunter2" not in output
        assert rows[0]["name"] == "Alice Martin"

    def test_search_column_values(self, services):
        """A partial keyword finds the stored spelling"""
        tool = SearchColumnValuesTool(services=services)
        output = json.loads(tool.invoke({
            "table_name": "users",
            "column_name": "name",
            "keyword": "alice",
            "data_source_id": 1,
        }))

        assert output["found"] is True
        assert output["values"] == ["Alice Martin"]

    def test_search_refuses_sensitive_column(self, services):
        """Sensitive columns cannot be searched"""
        output = SearchColumnValuesTool(services=services).invoke({
            "table_name": "users",
            "column_name": "password",
            "keyword": "hunter",
            "data_source_id": 1,
        })
        assert "sensitive" in output

    def test_missing_data_source_id(self, services):
        """Without a data source the tool reports an error string"""
        output = ListTablesTool(services=services).invoke({})
        assert output.startswith("Error executing list_tables")

    def test_unregistered_data_source(self, services):
        """Unknown data sources are agent-recoverable errors"""
        output = ListTablesTool(services=services).invoke({"data_source_id": 42})
        assert output.startswith("Error executing list_tables")


class TestRunQuerySample:
    """Test run_query_sample()"""

    def test_returns_markdown_table(self, services):
        """Rows come back as a markdown table"""
        output = RunQuerySampleTool(services=services).invoke({
            "sql": "SELECT name FROM users ORDER BY id",
            "data_source_id": 1,
        })

        assert output.splitlines()[0] == "| name |"
        assert "| Alice Martin |" in output

    def test_rejects_writes(self, services, connections):
        """Only SELECT/WITH are accepted"""
        output = RunQuerySampleTool(services=services).invoke({
            "sql": "DELETE FROM orders WHERE id = 1",
            "data_source_id": 1,
        })

        assert output.startswith("Error: run_query_sample only accepts")
        with connections.get_engine(1).connect() as conn:
            assert conn.exec_driver_sql("SELECT COUNT(*) FROM orders").scalar() == 3

    def test_blocks_sensitive_projection(self, services):
        """SELECT * on a table with secrets is blocked"""
        output = RunQuerySampleTool(services=services).invoke({"sql": "SELECT * FROM users", "data_source_id": 1})
        assert output.startswith("Security Block:")

    def test_engine_error_with_hint(self, services):
        """Engine errors are explained with a remediation hint"""
        output = RunQuerySampleTool(services=services).invoke({
            "sql": "SELECT nme FROM users",
            "data_source_id": 1,
        })

        assert output.startswith("Query failed:")
        assert "Hint:" in output


class TestValidateSql:
    """Test validate_sql verdicts"""

    @pytest.fixture
    def tool(self, services) -> ValidateSqlTool:
        return ValidateSqlTool(services=services)

    def test_plain_select_passes(self, tool):
        """A clean SELECT passes and the candidate is normalized"""
        verdict = tool.evaluate("SELECT  name\nFROM users;", 1)

        assert verdict.passed
        assert verdict.candidate == "SELECT name FROM users"

    def test_sensitive_column_rejected(self, tool):
        """Explicit references to secrets are a policy violation"""
        verdict = tool.evaluate("SELECT name, password FROM users", 1)

        assert not verdict.passed
        assert verdict.error_category == "policy_violation"
        assert verdict.reason.startswith("Security Block:")
        assert "password" in verdict.reason

    def test_star_on_sensitive_table_rejected(self, tool):
        """SELECT * is rejected only where the table holds secrets"""
        assert not tool.evaluate("SELECT * FROM users", 1).passed
        assert tool.evaluate("SELECT * FROM orders", 1).passed

    def test_ddl_rejected(self, tool):
        """DDL never reaches the engine"""
        verdict = tool.evaluate("DROP TABLE users", 1)

        assert not verdict.passed
        assert verdict.error_category == "policy_violation"

    def test_unscoped_update_rejected(self, tool):
        """UPDATE without WHERE is refused with a WHERE hint"""
        verdict = tool.evaluate("UPDATE orders SET status = 'void'", 1)

        assert not verdict.passed
        assert "WHERE" in verdict.reason

    def test_side_effect_statements_rejected(self, tool, tmp_path):
        """VACUUM INTO and ATTACH fail validation and leave no file behind"""
        copy = tmp_path / "exfil.db"
        attached = tmp_path / "attached.db"

        vacuum = tool.evaluate(f"VACUUM INTO '{copy}'", 1)
        attach = tool.evaluate(f"ATTACH DATABASE '{attached}' AS x", 1)

        assert not vacuum.passed
        assert vacuum.error_category == "policy_violation"
        assert not attach.passed
        assert attach.error_category == "policy_violation"
        assert not copy.exists()
        assert not attached.exists()

    def test_unknown_column_has_hint(self, tool):
        """Engine failures carry the normalized category and hint"""
        verdict = tool.evaluate("SELECT emial FROM users", 1)

        assert not verdict.passed
        assert verdict.error_category == "unknown_column"
        assert verdict.hint

    def test_tool_call_returns_artifact(self, tool):
        """Invoked with a tool call, the verdict rides along as the message artifact"""
        message = tool.invoke({
            "name": "validate_sql",
            "args": {"sql": "SELECT name FROM users", "data_source_id": 1},
            "id": "call_1",
            "type": "tool_call",
        })

        assert isinstance(message, ToolMessage)
        assert isinstance(message.artifact, ValidationVerdict)
        assert message.artifact.passed
        assert message.content.startswith("Validation passed.")
