"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class SubmitCommand:
    """Queue a submission with media files."""

    title: str
    file_list: tuple[str, ...]
    description: str | None = None
    command: Literal["submit"] = "submit"


@dataclass(frozen=True)
class SyncCommand:
    command: Literal["sync"] = "sync"


@dataclass(frozen=True)
class RetryCommand:
    """Retry failed queue items."""

    include_exhausted: bool = False
    command: Literal["retry"] = "retry"


@dataclass(frozen=True)
class StatsCommand:
    command: Literal["stats"] = "stats"


@dataclass(frozen=True)
class ListCommand:
    command: Literal["list"] = "list"


@dataclass(frozen=True)
class ShowCommand:
    """Show one submission by record id."""

    record_id: str
    command: Literal["show"] = "show"


@dataclass(frozen=True)
class QueueCommand:
    command: Literal["queue"] = "queue"


@dataclass(frozen=True)
class StatusCommand:
    command: Literal["status"] = "status"


@dataclass(frozen=True)
class ConnectivityCommand:
    """Report connectivity to the agent."""

    online: bool
    command: Literal["online", "offline"] = "online"


CommandRequest = (
    SubmitCommand
    | SyncCommand
    | RetryCommand
    | StatsCommand
    | ListCommand
    | ShowCommand
    | QueueCommand
    | StatusCommand
    | ConnectivityCommand
)
