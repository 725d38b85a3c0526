"""Data models for fileledger."""
