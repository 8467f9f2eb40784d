"""Storage components for notekeeper."""
from notekeeper.storage.ordering import OrderingEngine
from notekeeper.storage.persistence import NoteFileStore
from notekeeper.storage.search_index import SearchIndex

__all__ = ["NoteFileStore", "OrderingEngine", "SearchIndex"]
