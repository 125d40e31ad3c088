"""Change events flowing from the watch adapter to the sync engine."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ChangeKind(str, Enum):
    """Kinds of debounced filesystem changes."""

    CREATED = "created"
    REMOVED = "removed"
    WRITTEN = "written"
    OTHER = "other"


# Handler names the sync engine dispatches each change kind to.
# OTHER has no handler and is ignored.
HANDLER_NAMES = {
    ChangeKind.CREATED: "create",
    ChangeKind.REMOVED: "remove",
    ChangeKind.WRITTEN: "update",
}


@dataclass(frozen=True)
class ChangeEvent:
    """A single debounced change observed under the watched root."""

    kind: ChangeKind
    path: str

    @property
    def handler_name(self) -> Optional[str]:
        """Name of the handler for this event, or None if it is ignored."""
        return HANDLER_NAMES.get(self.kind)
