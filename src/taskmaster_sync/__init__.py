"""Taskmaster to GitHub Projects sync.

Syncs Taskmaster tasks into GitHub issues idempotently and resolves
natural-language item references for status updates and notes.
"""

__version__ = "0.4.0"
