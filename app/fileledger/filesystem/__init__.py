"""Filesystem mutation primitives."""
