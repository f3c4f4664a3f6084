"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = [
    "submit", "sync", "retry", "stats", "list", "show", "queue",
    "status", "online", "offline", "clear", "exit", "help",
]

MEDIA_FILE_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic",
    ".mp4", ".mov", ".avi", ".mkv", ".webm",
    ".mp3", ".wav", ".m4a", ".ogg",
)

STYLE = Style.from_dict(
    {
        "prompt": "#2BB673 bold",
        "command": "#0088ff bold",
    }
)

TEAL = "\033[38;2;43;182;115m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"
RESET = "\033[0m"

LOGO = f"""{TEAL}
 __  __          _ _        ____
|  \\/  | ___  __| (_) __ _ / ___| _   _ _ __   ___
| |\\/| |/ _ \\/ _` | |/ _` |\\___ \\| | | | '_ \\ / __|
| |  | |  __/ (_| | | (_| | ___) | |_| | | | | (__
|_|  |_|\\___|\\__,_|_|\\__,_||____/ \\__, |_| |_|\\___|
                                  |___/
{RESET}"""

WELCOME_TITLE = "MediaSync CLI - Offline media submissions"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "mediasync> "

HELP_TEXT = """Available commands:
  submit <title> <file>... [-d <description>]   Queue a submission with one or more media files
  sync                                          Run a sync pass now
  retry [--all]                                 Retry failed items (--all includes exhausted ones)
  stats                                         Show queue statistics
  list                                          List local submissions
  show <record_id>                              Show a submission and the state of its files
  queue                                         List every queued file
  status                                        Show sync status and connectivity
  online                                        Tell the agent the network is back
  offline                                       Tell the agent the network is gone
  clear                                         Clear screen and redisplay welcome message
  help                                          Show this help
  exit                                          Exit REPL

Examples:
  submit "Site visit" photo1.jpg clip.mp4 -d "North entrance"
  sync
  retry --all
  show 3f2b7c1e-9c1d-4b8e-a6a2-0d3f5c9e2b11"""

STATUS_COLORS = {
    "pending": YELLOW,
    "uploading": TEAL,
    "synced": GREEN,
    "failed": RED,
}
