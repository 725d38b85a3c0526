"""CLI commands for fileledger."""
