"""Demo data for trying out Cost Ledger."""
