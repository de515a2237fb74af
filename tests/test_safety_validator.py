"""
Tests for the AST safety validator and the read-only / sensitive-reference
analysis helpers.
"""

from querypilot.sql.analysis import (
    find_sensitive_references,
    find_star_tables,
    is_data_change,
    is_read_only,
    leading_keyword,
    normalize_candidate,
    validate_statement_safety,
)


class TestStatementSafety:
    """Test validate_statement_safety()"""

    def test_select_passes(self):
        """Plain reads are allowed"""
        assert validate_statement_safety("SELECT id, name FROM users WHERE id = 1", "mysql") is None

    def test_drop_is_blocked(self):
        """DROP is rejected whatever the dialect"""
        message = validate_statement_safety("DROP TABLE users", "postgresql")
        assert message is not None
        assert message.startswith("DROP statements are not allowed")

    def test_truncate_is_blocked(self):
        """TRUNCATE is rejected"""
        message = validate_statement_safety("TRUNCATE TABLE users", "mysql")
        assert message is not None
        assert message.startswith("TRUNCATE")

    def test_grant_is_blocked(self):
        """Administrative statements are rejected"""
        message = validate_statement_safety("GRANT ALL ON users TO bob", "mysql")
        assert message is not None
        assert "GRANT" in message

    def test_blocked_statement_after_select(self):
        """A blocked statement hidden after a harmless one is still found"""
        message = validate_statement_safety("SELECT 1; DROP TABLE users", "sqlite")
        assert message is not None
        assert "DROP" in message

    def test_delete_without_where(self):
        """Unscoped DELETE is rejected"""
        message = validate_statement_safety("DELETE FROM users", "mysql")
        assert message is not None
        assert message.startswith("DELETE without a WHERE clause")

    def test_update_without_where(self):
        """Unscoped UPDATE is rejected"""
        message = validate_statement_safety("UPDATE users SET name = 'x'", "sqlite")
        assert message is not None
        assert message.startswith("UPDATE without a WHERE clause")

    def test_scoped_mutations_pass(self):
        """DELETE / UPDATE with WHERE are allowed"""
        assert validate_statement_safety("DELETE FROM users WHERE id = 1", "mysql") is None
        assert validate_statement_safety("UPDATE users SET name = 'x' WHERE id = 2", "postgresql") is None

    def test_mutation_inside_cte(self):
        """A data-modifying CTE without WHERE is rejected"""
        sql = "WITH gone AS (DELETE FROM users RETURNING id) SELECT * FROM gone"
        assert validate_statement_safety(sql, "postgresql") is not None

    def test_empty_statement(self):
        """Whitespace-only input is rejected"""
        assert validate_statement_safety("   ", "mysql") is not None

    def test_unparsable_mutation_fails_closed(self):
        """Garbage containing a mutation keyword is never waved through"""
        assert validate_statement_safety("DROP TABLE ((( users", "mysql") is not None

    def test_deterministic(self):
        """Same input, same answer"""
        sql = "UPDATE users SET name = 'x'"
        assert validate_statement_safety(sql, "mysql") == validate_statement_safety(sql, "mysql")

    def test_create_index_is_blocked(self):
        """CREATE of any kind is rejected"""
        message = validate_statement_safety("CREATE INDEX idx ON t(a)", "sqlite")
        assert message is not None
        assert message.startswith("CREATE statements are not allowed")

    def test_alter_is_blocked(self):
        """ALTER is rejected"""
        message = validate_statement_safety("ALTER TABLE users ADD COLUMN x INT", "postgresql")
        assert message is not None
        assert message.startswith("ALTER")

    def test_replace_is_blocked(self):
        """MySQL REPLACE is rejected even though it parses like an INSERT"""
        message = validate_statement_safety("REPLACE INTO users VALUES (1)", "mysql")
        assert message is not None
        assert message.startswith("REPLACE")

    def test_revoke_is_blocked(self):
        """REVOKE is rejected"""
        message = validate_statement_safety("REVOKE SELECT ON users FROM bob", "mysql")
        assert message is not None
        assert "REVOKE" in message

    def test_malformed_update_fails_closed(self):
        """An UPDATE the parser cannot follow is never waved through"""
        assert validate_statement_safety("UPDATE ??? broken", "mysql") is not None
        assert validate_statement_safety("UPDATE ??? broken", "postgresql") is not None


class TestStatementAllowList:
    """Only queries, scoped DML and metadata statements get through"""

    def test_explain_analyze_write_is_rejected(self):
        """EXPLAIN ANALYZE runs its statement, so a wrapped write is refused"""
        for dialect in ("postgresql", "sqlite", "mysql"):
            assert validate_statement_safety("EXPLAIN ANALYZE DELETE FROM users", dialect) is not None
            assert validate_statement_safety("EXPLAIN ANALYZE UPDATE users SET x = 1", dialect) is not None
            assert validate_statement_safety("EXPLAIN ANALYZE DELETE FROM users WHERE id = 1", dialect) is not None

    def test_explain_options_are_unwrapped(self):
        """Parenthesized EXPLAIN options do not hide the statement"""
        sql = "EXPLAIN (ANALYZE, BUFFERS) UPDATE users SET name = 'x'"
        assert validate_statement_safety(sql, "postgresql") is not None

    def test_explain_of_a_query_passes(self):
        """Plain EXPLAIN over a SELECT stays allowed"""
        assert validate_statement_safety("EXPLAIN SELECT id FROM users", "postgresql") is None
        assert validate_statement_safety("EXPLAIN QUERY PLAN SELECT id FROM users", "sqlite") is None
        assert validate_statement_safety("EXPLAIN SELECT id FROM users", "mysql") is None

    def test_procedural_block_is_rejected(self):
        """Anonymous code blocks cannot be inspected"""
        assert validate_statement_safety("DO $$ BEGIN DELETE FROM users; END $$", "postgresql") is not None

    def test_call_and_copy_are_rejected(self):
        """Stored procedures and bulk file transfers are refused on every dialect"""
        for dialect in ("mysql", "postgresql", "sqlite"):
            assert validate_statement_safety("CALL wipe()", dialect) is not None
            assert validate_statement_safety("COPY users TO '/tmp/x'", dialect) is not None

    def test_sqlite_maintenance_is_rejected(self):
        """VACUUM and ATTACH are not queries"""
        assert validate_statement_safety("VACUUM INTO '/tmp/copy.db'", "sqlite") is not None
        assert validate_statement_safety("ATTACH DATABASE '/tmp/other.db' AS other", "sqlite") is not None

    def test_select_into_is_rejected(self):
        """SELECT INTO creates a table"""
        assert validate_statement_safety("SELECT * INTO archive FROM users", "postgresql") is not None

    def test_metadata_statements_pass(self):
        """SHOW and DESCRIBE are allowed"""
        assert validate_statement_safety("SHOW TABLES", "mysql") is None
        assert validate_statement_safety("DESCRIBE users", "mysql") is None

    def test_is_data_change(self):
        """Only parsed INSERT / UPDATE / DELETE / MERGE count as data changes"""
        assert is_data_change("UPDATE users SET name = 'x' WHERE id = 1", "sqlite")
        assert is_data_change("INSERT INTO users (name) VALUES ('x')", "postgresql")
        assert not is_data_change("VACUUM", "sqlite")
        assert not is_data_change("SELECT 1", "sqlite")
        assert not is_data_change("", "sqlite")


class TestReadOnly:
    """Test is_read_only() and leading_keyword()"""

    def test_reads(self):
        """SELECT and WITH queries are read-only"""
        assert is_read_only("SELECT * FROM users", "sqlite")
        assert is_read_only("WITH x AS (SELECT 1 AS n) SELECT n FROM x", "postgresql")

    def test_writes(self):
        """DML is not read-only"""
        assert not is_read_only("INSERT INTO users (name) VALUES ('x')", "mysql")
        assert not is_read_only("UPDATE users SET name = 'x' WHERE id = 1", "mysql")
        assert not is_read_only("DELETE FROM users WHERE id = 1", "sqlite")

    def test_explain_follows_the_explained_statement(self):
        """EXPLAIN is read-only only when what it explains is"""
        assert is_read_only("EXPLAIN SELECT * FROM users", "postgresql")
        assert not is_read_only("EXPLAIN ANALYZE DELETE FROM users", "postgresql")
        assert not is_read_only("EXPLAIN ANALYZE UPDATE users SET x = 1", "sqlite")
        assert not is_read_only("EXPLAIN ANALYZE DELETE FROM users WHERE id = 1", "mysql")

    def test_leading_keyword_skips_comments(self):
        """Comments and parentheses before the first keyword are ignored"""
        assert leading_keyword("-- find users\nselect 1") == "SELECT"
        assert leading_keyword("/* note */ (SELECT 1)") == "SELECT"
        assert leading_keyword("") == ""

    def test_normalize_candidate(self):
        """Whitespace is collapsed and trailing semicolons dropped"""
        assert normalize_candidate("  SELECT  *\n FROM users ; ") == "SELECT * FROM users"
        assert normalize_candidate("SELECT 1;") == normalize_candidate("SELECT   1")


class TestSensitiveReferences:
    """Test find_sensitive_references() and find_star_tables()"""

    def test_filter_reference_is_found(self):
        """Sensitive columns are found outside the projection too"""
        refs = find_sensitive_references(
            "SELECT name FROM users WHERE password = 'x'", "sqlite", ["password", "token"]
        )
        assert refs == ["password"]

    def test_clean_query(self):
        """No sensitive names, no references"""
        assert find_sensitive_references("SELECT name, email FROM users", "sqlite", ["password"]) == []

    def test_star_tables(self):
        """Star projections map back to their tables, aliases resolved"""
        assert find_star_tables("SELECT * FROM users", "sqlite") == {"users"}
        sql = "SELECT u.* FROM users u JOIN orders o ON o.user_id = u.id"
        assert find_star_tables(sql, "sqlite") == {"users"}

    def test_star_over_subquery(self):
        """A star over an explicit subquery does not implicate the inner tables"""
        assert find_star_tables("SELECT * FROM (SELECT name FROM users) AS s", "sqlite") == set()
