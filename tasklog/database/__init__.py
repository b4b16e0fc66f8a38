"""Database layer for tasklog."""
