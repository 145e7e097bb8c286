"""Services module for TapBoard."""

from .repository import HistoryEntry, LocalStore, SQLiteLocalStore
from .remote import HttpRemoteStore, RemoteStore
from .suggestion_service import SuggestionService, merge_suggestions, resolve_words
from .sync_service import SyncService
from .board_service import BoardService, BoardState, LongPressResult, VerbFormsView

__all__ = [
    'HistoryEntry',
    'LocalStore',
    'SQLiteLocalStore',
    'HttpRemoteStore',
    'RemoteStore',
    'SuggestionService',
    'merge_suggestions',
    'resolve_words',
    'SyncService',
    'BoardService',
    'BoardState',
    'LongPressResult',
    'VerbFormsView',
]
