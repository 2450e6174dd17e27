"""Persistence for one DailyRecord per calendar day."""

from .daily_records import DailyRecordStore, InMemoryDailyRecordStore, SqliteDailyRecordStore

__all__ = [
    "DailyRecordStore",
    "InMemoryDailyRecordStore",
    "SqliteDailyRecordStore",
]
