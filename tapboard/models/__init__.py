"""Data models for TapBoard."""

from .card import Card, Category, VerbForms
from .settings import UserGridSettings
from .sync import RecordKind, SyncableRecord, SyncState

__all__ = [
    'Card',
    'Category',
    'VerbForms',
    'UserGridSettings',
    'RecordKind',
    'SyncableRecord',
    'SyncState',
]
