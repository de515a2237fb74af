"""
SQL layer - safety analysis, error normalization and probe execution
"""
