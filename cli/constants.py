"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["upload", "upload-relay", "preview", "history", "config", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2FA4E7 bold",
        "command": "#0088ff bold",
    }
)

BLUE = "\033[38;2;47;164;231m"
GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
RESET = "\033[0m"

LOGO = f"""{BLUE}
 ███╗   ██╗███████╗████████╗███████╗████████╗ ██████╗ ██████╗ ███████╗
 ████╗  ██║██╔════╝╚══██╔══╝██╔════╝╚══██╔══╝██╔═══██╗██╔══██╗██╔════╝
 ██╔██╗ ██║█████╗     ██║   ███████╗   ██║   ██║   ██║██████╔╝█████╗
 ██║╚██╗██║██╔══╝     ██║   ╚════██║   ██║   ██║   ██║██╔══██╗██╔══╝
 ██║ ╚████║███████╗   ██║   ███████║   ██║   ╚██████╔╝██║  ██║███████╗
 ╚═╝  ╚═══╝╚══════╝   ╚═╝   ╚══════╝   ╚═╝    ╚═════╝ ╚═╝  ╚═╝╚══════╝
{RESET}"""

WELCOME_TITLE = "NetStore CLI - Content-addressed ledger storage"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "netstore> "

HISTORY_KEY = "uploads"

HELP_TEXT = """Available commands:
  upload <file> <key> [text]          Upload a file, paying for every write
  upload-relay <file> <key> [text]    Upload a file, chunk writes paid by the relay sponsor
  preview <file> <key>                Show what an upload would send
  history [limit]                     Show recent uploads (default 10)
  config [key [value]]                Show all settings, one setting, or set one
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Credentials come from the environment: NET_PRIVATE_KEY (hex ed25519 seed)
and NET_RELAY_SECRET_KEY (relay uploads only).
Examples:
  preview report.pdf reports/2024
  upload notes.txt my-notes "Meeting notes"
  upload-relay video.mp4 videos/intro
  config chain_id 84532
  history 5"""
