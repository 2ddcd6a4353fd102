"""Shared utilities: typed errors and logging setup."""
