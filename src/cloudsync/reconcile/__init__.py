"""
Reconciliation of cloud inventory against the host inventory

Components:
- diff: classify cloud hosts as new or changed by inner IP
- engine: execute one task run and apply or queue the differences
- history: record every run's outcome
"""

from .diff import filter_pending, find_changed_hosts, find_new_hosts, index_existing
from .engine import CloudSyncReconciler
from .history import HistoryRecorder, format_elapsed

__all__ = [
    "CloudSyncReconciler",
    "HistoryRecorder",
    "format_elapsed",
    "index_existing",
    "find_new_hosts",
    "find_changed_hosts",
    "filter_pending",
]
