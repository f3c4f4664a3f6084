"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.models import (
    CommandRequest,
    ConnectivityCommand,
    ListCommand,
    QueueCommand,
    RetryCommand,
    ShowCommand,
    StatsCommand,
    StatusCommand,
    SubmitCommand,
    SyncCommand,
)
from cli.config import Config
from cli.agent_client import AgentClient

logger = get_logger(__name__)


_client: Optional[AgentClient] = None


def get_client() -> AgentClient:
    """
    Get or create the shared AgentClient instance.
    """
    global _client
    if _client is None:
        logger.debug("Creating new AgentClient instance")
        config = Config(Path.home() / '.mediasync' / 'config.json')
        _client = AgentClient(config)
    return _client


def handle_submit(cmd: SubmitCommand, client: Optional[AgentClient] = None) -> str:
    """
    Handle 'submit' command.

    Args:
        cmd: SubmitCommand with title, file_list and optional description
        client: Optional AgentClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing submit command: {len(cmd.file_list)} files")
    if client is None:
        client = get_client()
    return client.submit(cmd.title, list(cmd.file_list), cmd.description)


def handle_sync(cmd: SyncCommand, client: Optional[AgentClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.sync()


def handle_retry(cmd: RetryCommand, client: Optional[AgentClient] = None) -> str:
    logger.info(f"Executing retry command: include_exhausted={cmd.include_exhausted}")
    if client is None:
        client = get_client()
    return client.retry(include_exhausted=cmd.include_exhausted)


def handle_stats(cmd: StatsCommand, client: Optional[AgentClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.stats()


def handle_list(cmd: ListCommand, client: Optional[AgentClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.list_submissions()


def handle_show(cmd: ShowCommand, client: Optional[AgentClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.show(cmd.record_id)


def handle_queue(cmd: QueueCommand, client: Optional[AgentClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.queue()


def handle_status(cmd: StatusCommand, client: Optional[AgentClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.status()


def handle_connectivity(cmd: ConnectivityCommand, client: Optional[AgentClient] = None) -> str:
    logger.info(f"Executing {cmd.command} command")
    if client is None:
        client = get_client()
    return client.set_online(cmd.online)


HANDLERS = {
    SubmitCommand: handle_submit,
    SyncCommand: handle_sync,
    RetryCommand: handle_retry,
    StatsCommand: handle_stats,
    ListCommand: handle_list,
    ShowCommand: handle_show,
    QueueCommand: handle_queue,
    StatusCommand: handle_status,
    ConnectivityCommand: handle_connectivity,
}


def dispatch_command(cmd_obj: CommandRequest, client: Optional[AgentClient] = None) -> str:
    """Dispatch parsed command to appropriate handler."""
    handler = HANDLERS.get(type(cmd_obj))
    if handler is None:
        return f"Unknown command type: {type(cmd_obj)}"
    return handler(cmd_obj, client)
