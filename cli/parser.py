"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    DecryptFileCommand,
    DecryptTextCommand,
    EncryptFileCommand,
    EncryptTextCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a command object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        One of EncryptFile/DecryptFile/EncryptText/DecryptText commands

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

    if command_name == "encrypt":
        return _parse_file_pair(tokens[1:], "encrypt", EncryptFileCommand)
    elif command_name == "decrypt":
        return _parse_file_pair(tokens[1:], "decrypt", DecryptFileCommand)
    elif command_name == "encrypt-text":
        return _parse_encrypt_text(tokens[1:])
    elif command_name == "decrypt-text":
        return _parse_decrypt_text(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_file_pair(args: list[str], name: str, command_type):
    """Parse '<name> <input> <output>'."""
    if len(args) != 2:
        raise ParseError(f"{name} requires exactly 2 arguments: <input> <output>")

    input_path, output_path = args
    if input_path == output_path:
        raise ParseError(f"{name} input and output must be different files")

    return command_type(input_path=input_path, output_path=output_path)


def _parse_encrypt_text(args: list[str]) -> EncryptTextCommand:
    """Parse 'encrypt-text <text...>'; remaining words are joined with spaces."""
    if not args:
        raise ParseError("encrypt-text requires text to encrypt")

    return EncryptTextCommand(text=" ".join(args))


def _parse_decrypt_text(args: list[str]) -> DecryptTextCommand:
    """Parse 'decrypt-text <hex>'."""
    if len(args) != 1:
        raise ParseError("decrypt-text requires exactly 1 argument: <hex-payload>")

    return DecryptTextCommand(payload=args[0])
