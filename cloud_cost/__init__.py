"""
Cloud Cost Manager backend

Aggregates month-to-date AWS cost across multiple accounts into one report.
"""

__version__ = "0.1.0"
