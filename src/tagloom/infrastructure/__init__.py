"""Infrastructure domain — configuration, debouncing, file watching, and index synchronization."""

from tagloom.infrastructure.config import TagloomConfig, load_config
from tagloom.infrastructure.debounce import Debouncer
from tagloom.infrastructure.synchronizer import IndexSynchronizer, create_index, open_workspace
from tagloom.infrastructure.watcher import WatchService, filter_relevant

__all__ = [
    "Debouncer",
    "IndexSynchronizer",
    "TagloomConfig",
    "WatchService",
    "create_index",
    "filter_relevant",
    "load_config",
    "open_workspace",
]
