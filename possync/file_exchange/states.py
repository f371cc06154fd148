"""Per-file lifecycle for batch imports.

Every file picked up from the export directory walks the same path::

    DISCOVERED -> READ -> IMPORTED
         |          |
         +----------+--> REJECTED

IMPORTED files are archived; REJECTED files are quarantined.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# State definitions
# ---------------------------------------------------------------------------

class FileState(str, Enum):
    DISCOVERED = "discovered"
    READ = "read"
    IMPORTED = "imported"
    REJECTED = "rejected"


_FILE_TRANSITIONS: dict[FileState, list[FileState]] = {
    FileState.DISCOVERED: [FileState.READ, FileState.REJECTED],
    FileState.READ: [FileState.IMPORTED, FileState.REJECTED],
    FileState.IMPORTED: [],  # terminal
    FileState.REJECTED: [],  # terminal
}


# ---------------------------------------------------------------------------
# Lifecycle tracking
# ---------------------------------------------------------------------------

@dataclass
class FileTransition:
    from_state: str
    to_state: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class FileLifecycle:
    """State tracking for one file in one batch run."""

    path: Path
    current_state: FileState = FileState.DISCOVERED
    history: list[FileTransition] = field(default_factory=list)

    def can_transition(self, to_state: FileState) -> bool:
        return to_state in _FILE_TRANSITIONS.get(self.current_state, [])

    def transition(self, to_state: FileState, **metadata: Any) -> FileTransition:
        """Move to ``to_state``. Raises ValueError if the move is not allowed."""
        if not self.can_transition(to_state):
            allowed = [s.value for s in _FILE_TRANSITIONS.get(self.current_state, [])]
            raise ValueError(
                f"Cannot transition {self.path.name} from {self.current_state.value} "
                f"to {to_state.value}. Allowed: {allowed}"
            )
        record = FileTransition(
            from_state=self.current_state.value,
            to_state=to_state.value,
            timestamp=datetime.now(timezone.utc),
            metadata=metadata,
        )
        self.history.append(record)
        self.current_state = to_state
        return record

    @property
    def is_terminal(self) -> bool:
        return len(_FILE_TRANSITIONS.get(self.current_state, [])) == 0
