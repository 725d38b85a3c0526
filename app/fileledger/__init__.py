"""fileledger - recoverable file operations with history and undo."""

__version__ = "0.1.0"
