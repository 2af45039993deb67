"""REPL with prompt_toolkit for user interaction."""

import os
import sys
from typing import Callable

from prompt_toolkit import PromptSession, prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import InMemoryHistory

from cli.commands import (
    handle_decrypt,
    handle_decrypt_text,
    handle_encrypt,
    handle_encrypt_text,
)
from cli.constants import (
    COMMANDS,
    HELP_TEXT,
    PASSWORD_PROMPT,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
from cli.models import (
    DecryptFileCommand,
    DecryptTextCommand,
    EncryptFileCommand,
    EncryptTextCommand,
)
from cli.parser import ParseError, parse_command


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def read_password() -> str:
    """Ask for a password without echoing it."""
    return prompt(PASSWORD_PROMPT, is_password=True)


def dispatch_command(cmd_obj, password_provider: Callable[[], str] = read_password) -> str:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, EncryptFileCommand):
        return handle_encrypt(cmd_obj, password_provider())
    elif isinstance(cmd_obj, DecryptFileCommand):
        return handle_decrypt(cmd_obj, password_provider())
    elif isinstance(cmd_obj, EncryptTextCommand):
        return handle_encrypt_text(cmd_obj, password_provider())
    elif isinstance(cmd_obj, DecryptTextCommand):
        return handle_decrypt_text(cmd_obj, password_provider())
    else:
        return f"Unknown command type: {type(cmd_obj)}"


def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    completer = WordCompleter(COMMANDS, ignore_case=True)
    history = InMemoryHistory()
    session: PromptSession = PromptSession(
        completer=completer, history=history, style=STYLE
    )

    print(WELCOME_TITLE)
    print(WELCOME_HELP)

    while True:
        try:
            user_input = session.prompt([("class:prompt", PROMPT_TEXT)])
            command = user_input.strip()

            if not command:
                continue

            if command == "exit":
                print("Goodbye!")
                break

            if command == "help":
                print(HELP_TEXT)
                continue

            if command == "clear":
                clear_screen()
                print(WELCOME_TITLE)
                print(WELCOME_HELP)
                continue

            cmd_obj = parse_command(user_input)
            print(dispatch_command(cmd_obj))

        except ParseError as e:
            print(f"Error: {e}")
        except KeyboardInterrupt:
            continue
        except EOFError:
            print("\nGoodbye!")
            break
