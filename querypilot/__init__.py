"""
querypilot - guarded natural-language to SQL/Lucene agent
"""

from querypilot.utils.logger import setup_logger

setup_logger()

__version__ = "0.1.0"
