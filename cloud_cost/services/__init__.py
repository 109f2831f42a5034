"""
Services package for Cloud Cost Manager
Contains the credential resolver, cost providers, account fetcher, aggregator and report service
"""

__all__ = [
    'credential_resolver',
    'cost_provider',
    'aws_cost_provider',
    'account_fetcher',
    'aggregator',
    'report_cache',
    'report_service',
]
