"""tasklog: recurring task occurrence engine for a markdown task list."""
