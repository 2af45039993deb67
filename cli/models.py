"""Command request types for the vault CLI."""

from dataclasses import dataclass
from typing import Literal, Union


@dataclass(frozen=True)
class EncryptFileCommand:
    """Encrypt a file on disk."""

    input_path: str
    output_path: str
    command: Literal["encrypt"] = "encrypt"


@dataclass(frozen=True)
class DecryptFileCommand:
    """Decrypt a file on disk."""

    input_path: str
    output_path: str
    command: Literal["decrypt"] = "decrypt"


@dataclass(frozen=True)
class EncryptTextCommand:
    """Encrypt text to a hex payload."""

    text: str
    command: Literal["encrypt-text"] = "encrypt-text"


@dataclass(frozen=True)
class DecryptTextCommand:
    """Decrypt a hex payload to text."""

    payload: str
    command: Literal["decrypt-text"] = "decrypt-text"


CommandRequest = Union[EncryptFileCommand, DecryptFileCommand, EncryptTextCommand, DecryptTextCommand]
