"""Command handler functions for CLI operations."""

from typing import Optional

from common.logging_config import get_logger
from cli.models import (
    DecryptFileCommand,
    DecryptTextCommand,
    EncryptFileCommand,
    EncryptTextCommand,
)
from vault.exceptions import CipherError, CipherInputMissingError, CipherIOError, MalformedHeaderError
from vault.stream_cipher import StreamCipher

logger = get_logger(__name__)


_cipher: Optional[StreamCipher] = None


def get_cipher() -> StreamCipher:
    """
    Get or create global StreamCipher instance.

    Returns:
        StreamCipher instance
    """
    global _cipher
    if _cipher is None:
        _cipher = StreamCipher()
    return _cipher


def handle_encrypt(cmd: EncryptFileCommand, password: str, cipher: Optional[StreamCipher] = None) -> str:
    """
    Handle 'encrypt' command.

    Args:
        cmd: EncryptFileCommand with input and output paths
        password: Password to derive the key from
        cipher: Optional StreamCipher for dependency injection (testing)

    Returns:
        Success or error message
    """
    if cipher is None:
        cipher = get_cipher()

    logger.info(f"Executing encrypt command: {cmd.input_path} -> {cmd.output_path}")
    try:
        result = cipher.encrypt_file(cmd.input_path, cmd.output_path, password)
    except CipherInputMissingError:
        return f"Error: file not found: {cmd.input_path}"
    except CipherError as e:
        logger.debug(f"Encrypt command failed: {e}")
        return f"Error: could not encrypt {cmd.input_path}"

    return f"Encrypted {cmd.input_path} -> {result.path}"


def handle_decrypt(cmd: DecryptFileCommand, password: str, cipher: Optional[StreamCipher] = None) -> str:
    """
    Handle 'decrypt' command.

    Args:
        cmd: DecryptFileCommand with input and output paths
        password: Password the file was encrypted with
        cipher: Optional StreamCipher for dependency injection (testing)

    Returns:
        Success or error message
    """
    if cipher is None:
        cipher = get_cipher()

    logger.info(f"Executing decrypt command: {cmd.input_path} -> {cmd.output_path}")
    try:
        result = cipher.decrypt_file(cmd.input_path, cmd.output_path, password)
    except CipherInputMissingError:
        return f"Error: file not found: {cmd.input_path}"
    except MalformedHeaderError:
        return f"Error: {cmd.input_path} is not an encrypted file"
    except CipherIOError as e:
        logger.debug(f"Decrypt command failed: {e}")
        return f"Error: could not decrypt {cmd.input_path}"
    except CipherError as e:
        logger.debug(f"Decrypt command failed: {e}")
        return "Error: decryption failed (wrong password or corrupted file)"

    return f"Decrypted {cmd.input_path} -> {result.path}"


def handle_encrypt_text(cmd: EncryptTextCommand, password: str, cipher: Optional[StreamCipher] = None) -> str:
    if cipher is None:
        cipher = get_cipher()
    return cipher.encrypt_buffer(cmd.text, password).encrypted


def handle_decrypt_text(cmd: DecryptTextCommand, password: str, cipher: Optional[StreamCipher] = None) -> str:
    if cipher is None:
        cipher = get_cipher()

    try:
        return cipher.decrypt_text(cmd.payload, password)
    except MalformedHeaderError:
        return "Error: payload is not a valid encrypted hex string"
    except CipherError:
        return "Error: decryption failed (wrong password or corrupted payload)"
