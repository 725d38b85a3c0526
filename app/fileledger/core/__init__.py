"""Core ledger, backup, undo and service components."""
