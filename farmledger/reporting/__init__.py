"""Reporting package."""

from farmledger.reporting.aggregation import (
    category_breakdown,
    filter_by_type,
    monthly_series,
    summarize,
)

__all__ = ["category_breakdown", "filter_by_type", "monthly_series", "summarize"]
