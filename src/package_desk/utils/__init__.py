"""
Utility modules.

This module contains the record store contract and its Supabase
implementation, shared by the repositories and the change listener.
"""

from .database import (
    ChangeSubscription,
    DatabaseConnectionError,
    RecordStore,
    SupabaseRecordStore,
    close_record_store,
    get_record_store,
)

__all__ = [
    "ChangeSubscription",
    "DatabaseConnectionError",
    "RecordStore",
    "SupabaseRecordStore",
    "close_record_store",
    "get_record_store",
]
