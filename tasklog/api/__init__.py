"""HTTP API for tasklog."""
