"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["status", "send-code", "verify-code", "reset", "link", "info", "upload", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2AABEE bold",
        "command": "#0088ff bold",
    }
)

TELEGRAM_BLUE = "\033[38;2;42;171;238m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{TELEGRAM_BLUE}
 ████████╗ ██████╗     ██████╗ ███████╗██╗      █████╗ ██╗   ██╗
 ╚══██╔══╝██╔════╝     ██╔══██╗██╔════╝██║     ██╔══██╗╚██╗ ██╔╝
    ██║   ██║  ███╗    ██████╔╝█████╗  ██║     ███████║ ╚████╔╝
    ██║   ██║   ██║    ██╔══██╗██╔══╝  ██║     ██╔══██║  ╚██╔╝
    ██║   ╚██████╔╝    ██║  ██║███████╗███████╗██║  ██║   ██║
    ╚═╝    ╚═════╝     ╚═╝  ╚═╝╚══════╝╚══════╝╚═╝  ╚═╝   ╚═╝
{RESET}"""

WELCOME_TITLE = "Telegram Relay - operator console"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "tgrelay> "

HELP_TEXT = """Available commands:
  status                              Show relay account sign-in state
  send-code                           Send a sign-in code to the relay account phone
  verify-code <code>                  Complete sign-in with the received code
  reset                               Reset the relay account session (e.g. after a 2FA failure)
  link <file_id> [client_ip]          Create a signed, time-limited download link
  info <file_id>                      Show file information and download count
  upload <path> <telegram_id>         Upload a local file on behalf of a user
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Files larger than the direct upload limit need the relay account signed in.
Examples:
  send-code
  verify-code 12345
  upload ./video.mp4 123456789
  link 3f2b8c1e-0d5a-4e9f-9a51-8f0e2d7c6b44"""
