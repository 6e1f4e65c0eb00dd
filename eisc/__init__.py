"""EISC credit ledger service."""
