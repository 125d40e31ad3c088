"""Name-to-handler dispatch table for change events."""

import logging
from dataclasses import dataclass
from typing import Protocol

from ..paths import PathCodec, PathLike
from ..storage import StorageGateway
from .filesystem import FileReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandlerContext:
    """Shared, read-only collaborators handed to every handler."""

    storage: StorageGateway
    codec: PathCodec
    files: FileReader


class PathEventHandler(Protocol):
    """A handler reacting to a change at a single path."""

    def handle(self, path: PathLike, context: HandlerContext) -> None: ...


class EventHandlerRegistry:
    """Maps handler names to handlers and dispatches paths to them.

    Handlers are registered during start-up only. After :meth:`freeze` the
    table is read-only for the rest of the process.
    """

    def __init__(self, context: HandlerContext):
        """Initialize an empty registry.

        Args:
            context: Collaborators passed to every handler invocation
        """
        self.context = context
        self._handlers: dict[str, PathEventHandler] = {}
        self._frozen = False

    @property
    def names(self) -> list[str]:
        """Registered handler names."""
        return list(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def register(self, name: str, handler: PathEventHandler) -> None:
        """Bind ``handler`` to ``name``, replacing any previous binding.

        Raises:
            RuntimeError: If the registry has been frozen
        """
        if self._frozen:
            raise RuntimeError(
                f"Cannot register handler '{name}': registry is frozen"
            )
        self._handlers[name] = handler

    def freeze(self) -> None:
        """Make the registry read-only."""
        self._frozen = True

    def dispatch(self, name: str, path: PathLike) -> None:
        """Run the handler registered under ``name`` for ``path``.

        Unknown names are ignored. Exceptions raised by the handler
        propagate to the caller.
        """
        handler = self._handlers.get(name)
        if handler is None:
            logger.debug("No handler registered for '%s', ignoring %s", name, path)
            return

        logger.debug("Calling '%s' handler for %s", name, path)
        handler.handle(path, self.context)
