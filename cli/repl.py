"""Interactive upload shell built on prompt_toolkit."""

import os
import sys
from pathlib import Path
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory, InMemoryHistory

from cli.commands import (
    NETSTORE_HOME,
    handle_config,
    handle_history,
    handle_preview,
    handle_upload,
    handle_upload_relay,
)
from cli.constants import (
    COMMANDS,
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
from cli.models import (
    CommandRequest,
    ConfigCommand,
    HistoryCommand,
    PreviewCommand,
    RelayUploadCommand,
    UploadCommand,
)
from cli.parser import ParseError, parse_command

EXIT = "exit"


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    os.system("cls" if sys.platform == "win32" else "clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)


def dispatch_command(cmd_obj: CommandRequest) -> str:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, UploadCommand):
        return handle_upload(cmd_obj)
    elif isinstance(cmd_obj, RelayUploadCommand):
        return handle_upload_relay(cmd_obj)
    elif isinstance(cmd_obj, PreviewCommand):
        return handle_preview(cmd_obj)
    elif isinstance(cmd_obj, HistoryCommand):
        return handle_history(cmd_obj)
    elif isinstance(cmd_obj, ConfigCommand):
        return handle_config(cmd_obj)
    else:
        return f"Unknown command type: {type(cmd_obj)}"


def run_builtin(line: str) -> Optional[str]:
    """
    Run a shell-level command that needs no parsing.

    Returns:
        EXIT to leave the loop, "" when the line was handled, None otherwise
    """
    if line == "exit":
        return EXIT
    if line == "help":
        print(HELP_TEXT)
        return ""
    if line == "clear":
        clear_screen()
        show_welcome()
        return ""
    return None


def _history(history_path: Optional[Path]):
    if history_path is None:
        return InMemoryHistory()
    try:
        history_path.parent.mkdir(parents=True, exist_ok=True)
        return FileHistory(str(history_path))
    except OSError:
        return InMemoryHistory()


def repl_loop(history_path: Optional[Path] = NETSTORE_HOME / "repl_history") -> None:
    """
    Start the interactive shell.

    Args:
        history_path: File for persisted input history; None keeps it in memory
    """
    session: PromptSession = PromptSession(
        completer=WordCompleter(COMMANDS, ignore_case=True),
        history=_history(history_path),
        style=STYLE,
    )

    clear_screen()
    show_welcome()

    while True:
        try:
            line = session.prompt([("class:prompt", PROMPT_TEXT)]).strip()
            if not line:
                continue

            builtin = run_builtin(line)
            if builtin == EXIT:
                print("Goodbye!")
                break
            if builtin is not None:
                continue

            print(dispatch_command(parse_command(line)))

        except ParseError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break
