"""
Core modules for Cost Ledger.

This package contains the filter compiler, the aggregation engine, page
arithmetic, aggregate formatting and request validation.
"""
