"""
SQL execution - dialect-aware probes that never change data
"""

from querypilot.sql.execution.executor import ProbeResult, QueryExecutor, analyze_plan, join_warnings

__all__ = ["ProbeResult", "QueryExecutor", "analyze_plan", "join_warnings"]
