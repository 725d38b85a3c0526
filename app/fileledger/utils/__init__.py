"""Utility modules for fileledger."""
