"""Command parser for CLI input."""

import shlex

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

DESCRIPTION_FLAGS = ("-d", "--description")


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]
    args = tokens[1:]

    if command_name == "submit":
        return _parse_submit(args)
    elif command_name == "retry":
        return _parse_retry(args)
    elif command_name == "show":
        return _parse_show(args)
    elif command_name in ("online", "offline"):
        _expect_no_args(command_name, args)
        return ConnectivityCommand(online=command_name == "online", command=command_name)

    simple_commands = {
        "sync": SyncCommand,
        "stats": StatsCommand,
        "list": ListCommand,
        "queue": QueueCommand,
        "status": StatusCommand,
    }
    if command_name in simple_commands:
        _expect_no_args(command_name, args)
        return simple_commands[command_name]()

    raise ParseError(f"Unknown command: {command_name}")


def _expect_no_args(command_name: str, args: list[str]) -> None:
    if args:
        raise ParseError(f"{command_name} takes no arguments")


def _parse_submit(args: list[str]) -> SubmitCommand:
    """Parse 'submit <title> <file>... [-d <description>]' command."""
    description = None
    positional = []
    index = 0
    while index < len(args):
        arg = args[index]
        if arg in DESCRIPTION_FLAGS:
            if index + 1 >= len(args):
                raise ParseError(f"{arg} requires a description")
            if description is not None:
                raise ParseError("description given more than once")
            description = args[index + 1]
            index += 2
            continue
        positional.append(arg)
        index += 1

    if len(positional) < 2:
        raise ParseError("submit requires a title and at least one file")

    title, file_list = positional[0], positional[1:]
    if not title.strip():
        raise ParseError("submit requires a non-empty title")

    return SubmitCommand(title=title, file_list=tuple(file_list), description=description)


def _parse_retry(args: list[str]) -> RetryCommand:
    """Parse 'retry [--all]' command."""
    if not args:
        return RetryCommand(include_exhausted=False)
    if args == ["--all"]:
        return RetryCommand(include_exhausted=True)
    raise ParseError("retry accepts only the --all flag")


def _parse_show(args: list[str]) -> ShowCommand:
    """Parse 'show <record_id>' command."""
    if len(args) != 1:
        raise ParseError("show requires exactly 1 argument: <record_id>")
    return ShowCommand(record_id=args[0])
