"""
Poll loop scheduler module

Runs the service's fixed-interval jobs using APScheduler.
"""

from .scheduler import SyncScheduler

__all__ = [
    'SyncScheduler',
]
