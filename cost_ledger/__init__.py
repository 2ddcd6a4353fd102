"""
Cost Ledger.

Queryable ledger of cloud cost records with summaries, trends and filter catalogs.
"""

__version__ = "0.1.0"
