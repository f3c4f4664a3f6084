"""Completer for the MediaSync REPL: command names and media file paths."""

import shlex
from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS, MEDIA_FILE_EXTENSIONS


class MediaSyncCompleter(Completer):
    """
    Completes the command name for the first token and, for ``submit``,
    media file paths once the title has been typed.
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        try:
            tokens = shlex.split(text)
        except ValueError:
            return

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        if tokens[0].lower() != "submit":
            return

        # submit <title> <file>...: the first argument is the title
        argument_index = len(tokens) if is_typing_new_token else len(tokens) - 1
        if argument_index < 2 or tokens[-1] in ("-d", "--description"):
            return
        if not is_typing_new_token and len(tokens) > 2 and tokens[-2] in ("-d", "--description"):
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        already_typed = set(tokens[2:])
        already_typed.discard(current_word)

        yield from self._complete_media_paths(current_word, already_typed)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_media_paths(self, partial: str, exclude: set) -> Iterable[Completion]:
        """
        Complete directories and media files under the directory named by ``partial``.

        Paths are relative to the working directory unless ``partial`` is absolute.
        """
        directory_part, _, name_part = partial.rpartition("/")
        if partial.startswith("/") and not directory_part:
            directory_part = "/"
        base = Path(directory_part) if directory_part else Path.cwd()

        if not base.is_dir():
            return

        prefix = "" if not directory_part else directory_part.rstrip("/") + "/"
        candidates = []
        for entry in base.iterdir():
            if entry.name.startswith(".") and not name_part.startswith("."):
                continue
            if entry.is_dir():
                candidates.append(f"{prefix}{entry.name}/")
            elif entry.name.lower().endswith(MEDIA_FILE_EXTENSIONS):
                candidates.append(f"{prefix}{entry.name}")

        name_lower = name_part.lower()
        for candidate in sorted(candidates):
            if candidate in exclude:
                continue
            if Path(candidate).name.lower().startswith(name_lower):
                yield Completion(candidate, start_position=-len(partial))
