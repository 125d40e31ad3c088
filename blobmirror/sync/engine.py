"""Core sync engine consuming change events."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from ..api import AzureBlobClient
from ..exceptions import BlobMirrorError, ConfigError
from ..paths import PathCodec, resolve_root
from ..storage import StorageGateway
from .events import ChangeEvent
from .filesystem import FileReader, LocalFileReader
from .handlers import build_registry
from .registry import HandlerContext, PathLike
from .watcher import WatchAdapter

if TYPE_CHECKING:
    from ..config import MirrorConfig

logger = logging.getLogger(__name__)


@dataclass
class SyncStats:
    """Counters kept by the dispatch loop."""

    events: int = 0
    dispatched: int = 0
    ignored: int = 0
    failures: int = 0


class SyncEngine:
    """Routes change events to the create, remove and update handlers."""

    def __init__(
        self,
        storage: StorageGateway,
        codec: PathCodec,
        files: Optional[FileReader] = None,
    ):
        """Initialize sync engine.

        Args:
            storage: Gateway to the remote container
            codec: Path to blob key mapping for the watched root
            files: Local file reader (defaults to reading from disk)
        """
        self.storage = storage
        self.codec = codec
        self.files = files or LocalFileReader()
        self.registry = build_registry(
            HandlerContext(storage=storage, codec=codec, files=self.files)
        )
        self.stats = SyncStats()

    def dispatch(self, event_name: str, path: PathLike) -> None:
        """Run the handler registered under ``event_name`` for ``path``.

        Unknown names are ignored. Handler failures propagate.
        """
        self.registry.dispatch(event_name, path)

    def route_event(self, event: ChangeEvent) -> bool:
        """Dispatch a change event to its handler.

        Returns:
            True if a handler was invoked, False if the event was ignored
        """
        name = event.handler_name
        if name is None:
            return False
        self.dispatch(name, event.path)
        return True

    def run(self, events: Iterable[ChangeEvent]) -> SyncStats:
        """Process events one at a time until the stream ends.

        Each event is handled to completion before the next is consumed.
        Failures propagated by a handler are logged and counted; the loop
        carries on with the next event.

        Args:
            events: Stream of debounced change events

        Returns:
            Statistics for the processed events
        """
        for event in events:
            self.stats.events += 1
            try:
                if self.route_event(event):
                    self.stats.dispatched += 1
                else:
                    self.stats.ignored += 1
            except BlobMirrorError as e:
                self.stats.failures += 1
                logger.error("Failed to sync %s (%s): %s", event.path, event.kind.value, e)

        logger.info(
            "Event stream closed after %d event(s), %d failure(s)",
            self.stats.events,
            self.stats.failures,
        )
        return self.stats


def run(config: "MirrorConfig") -> SyncStats:
    """Mirror the configured root folder until interrupted.

    Blocks for the lifetime of the process.

    Raises:
        ConfigError: If the root folder is not an existing directory
    """
    root = resolve_root(config.root_folder)
    if not root.exists():
        raise ConfigError(f"Root folder does not exist: {root}")
    if not root.is_dir():
        raise ConfigError(f"Root folder is not a directory: {root}")

    with AzureBlobClient(
        account_name=config.storage_account,
        account_key=config.account_key,
        container_name=config.container_name,
        endpoint=config.endpoint,
    ) as client:
        engine = SyncEngine(client, PathCodec(root))
        watch = WatchAdapter(root, debounce_seconds=config.debounce_seconds)
        watch.start()
        try:
            engine.run(watch.events())
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            watch.stop()
    return engine.stats
