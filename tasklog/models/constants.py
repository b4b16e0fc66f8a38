"""Constants for tasklog.

This module centralizes the engine's bounds and scheduling defaults.
"""

from datetime import timedelta


# Ceiling for every day-by-day search, in days
SEARCH_ITERATION_LIMIT = 1000

# Materialization
MATERIALIZE_COOLDOWN = timedelta(hours=24)
MATERIALIZE_LOOKAHEAD = 2  # occurrences computed per template per pass
MATERIALIZE_HORIZON_DAYS = 1  # persist occurrences due up to tomorrow

# Virtual occurrences surfaced per template on load
DEFAULT_VIRTUAL_COUNT = 1
MAX_VIRTUAL_COUNT = 30

# Line format
DEFAULT_TASK_IDENTIFIER = "#tlog"
