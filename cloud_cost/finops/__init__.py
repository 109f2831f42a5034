"""
FinOps Module - period arithmetic for month-over-month cost comparison
"""

from cloud_cost.finops.periods import (
    current_period,
    previous_period,
    report_periods,
    utc_today,
)

__all__ = [
    'current_period',
    'previous_period',
    'report_periods',
    'utc_today',
]
