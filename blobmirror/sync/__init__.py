"""Sync engine for blobmirror - mirrors local changes into blob storage."""

from .engine import SyncEngine, SyncStats, run
from .events import HANDLER_NAMES, ChangeEvent, ChangeKind
from .filesystem import FileReader, LocalFileReader
from .handlers import (
    CreatedHandler,
    RemovedHandler,
    UpdatedHandler,
    build_registry,
    upload_file,
)
from .registry import EventHandlerRegistry, HandlerContext, PathEventHandler
from .watcher import EventDebouncer, WatchAdapter, classify

__all__ = [
    "SyncEngine",
    "SyncStats",
    "run",
    "ChangeEvent",
    "ChangeKind",
    "HANDLER_NAMES",
    "FileReader",
    "LocalFileReader",
    "EventHandlerRegistry",
    "HandlerContext",
    "PathEventHandler",
    "CreatedHandler",
    "RemovedHandler",
    "UpdatedHandler",
    "build_registry",
    "upload_file",
    "EventDebouncer",
    "WatchAdapter",
    "classify",
]
