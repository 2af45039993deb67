"""Password-based streaming encryption for files and buffers.

Wire format (files):   salt(16) || iv(16) || AES-256-CBC ciphertext (PKCS7)
Wire format (buffers): the same bytes, hex-encoded as one string

The key is derived with PBKDF2-HMAC-SHA256 over (password, salt). Salt and IV
are fresh for every call and are not secret. CBC carries no authentication
tag, so a wrong password shows up either as a padding error or as garbage
plaintext.
"""

import asyncio
import io
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Union

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from common.constants import (
    HEADER_SIZE_BYTES,
    IV_SIZE_BYTES,
    KDF_ITERATIONS,
    KEY_SIZE_BYTES,
    SALT_SIZE_BYTES,
    STREAM_BUFFER_SIZE,
)
from common.logging_config import get_logger
from vault.exceptions import CipherError, CipherInputMissingError, CipherIOError, MalformedHeaderError

logger = get_logger(__name__)

PathLike = Union[str, Path]
Password = Union[str, bytes]


@dataclass(frozen=True)
class CipherHeader:
    """
    Salt and IV prepended to every payload.
    """
    salt: bytes
    iv: bytes

    def to_bytes(self) -> bytes:
        return self.salt + self.iv

    @classmethod
    def from_bytes(cls, data: bytes) -> "CipherHeader":
        if len(data) < HEADER_SIZE_BYTES:
            raise MalformedHeaderError(
                f"Payload too short for header: {len(data)} bytes (need {HEADER_SIZE_BYTES})"
            )
        return cls(salt=data[:SALT_SIZE_BYTES], iv=data[SALT_SIZE_BYTES:HEADER_SIZE_BYTES])

    @classmethod
    def generate(cls) -> "CipherHeader":
        return cls(salt=os.urandom(SALT_SIZE_BYTES), iv=os.urandom(IV_SIZE_BYTES))


@dataclass(frozen=True)
class EncryptionResult:
    """Outcome of encrypting a file."""
    path: str
    salt: str
    iv: str


@dataclass(frozen=True)
class DecryptionResult:
    """Outcome of decrypting a file."""
    path: str


@dataclass(frozen=True)
class EncryptedBuffer:
    """Hex-encoded buffer-mode ciphertext, header included."""
    encrypted: str
    salt: str
    iv: str


def _read_pieces(reader: BinaryIO, piece_size: int) -> Iterator[bytes]:
    while True:
        piece = reader.read(piece_size)
        if not piece:
            break
        yield piece


def _read_exactly(reader: BinaryIO, size: int) -> bytes:
    data = b""
    while len(data) < size:
        piece = reader.read(size - len(data))
        if not piece:
            break
        data += piece
    return data


def _same_file(input_path: Path, output_path: Path) -> bool:
    """True if both paths name the same file, including via links or relative forms."""
    if input_path.resolve() == output_path.resolve():
        return True
    if output_path.exists():
        return os.path.samefile(input_path, output_path)
    return False


def _remove_partial(path: Path) -> None:
    try:
        path.unlink()
        logger.debug(f"Removed partial output {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error(f"Failed to remove partial output {path}: {e}")


class StreamCipher:
    """
    AES-256-CBC encryption keyed by PBKDF2-HMAC-SHA256.

    Streaming methods hold at most one buffer of plaintext/ciphertext in
    memory; buffer methods go through the same code path so both produce the
    same wire format.
    """

    def __init__(self, iterations: int = KDF_ITERATIONS, buffer_size: int = STREAM_BUFFER_SIZE):
        """
        Args:
            iterations: PBKDF2 iteration count, at least 100 000
            buffer_size: Bytes read per step when streaming
        """
        if iterations < KDF_ITERATIONS:
            raise ValueError(f"iterations must be at least {KDF_ITERATIONS}")
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self.iterations = iterations
        self.buffer_size = buffer_size

    def derive_key(self, password: Password, salt: bytes) -> bytes:
        """
        Derive a 32-byte key from a password and salt.

        Args:
            password: Password as text (UTF-8 encoded) or bytes
            salt: 16 random bytes from the header
        """
        if isinstance(password, str):
            password = password.encode("utf-8")
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_SIZE_BYTES,
            salt=salt,
            iterations=self.iterations,
        )
        return kdf.derive(password)

    def encrypt_stream(self, reader: BinaryIO, writer: BinaryIO, password: Password) -> CipherHeader:
        """
        Encrypt everything readable from reader into writer.

        Writes the header first, then ciphertext as plaintext is pulled.

        Returns:
            The header that was written
        """
        header = CipherHeader.generate()
        key = self.derive_key(password, header.salt)
        encryptor = Cipher(algorithms.AES(key), modes.CBC(header.iv)).encryptor()
        padder = padding.PKCS7(algorithms.AES.block_size).padder()

        writer.write(header.to_bytes())
        for piece in _read_pieces(reader, self.buffer_size):
            writer.write(encryptor.update(padder.update(piece)))
        writer.write(encryptor.update(padder.finalize()) + encryptor.finalize())

        return header

    def decrypt_stream(self, reader: BinaryIO, writer: BinaryIO, password: Password) -> CipherHeader:
        """
        Decrypt a header-prefixed payload from reader into writer.

        Raises:
            MalformedHeaderError: If fewer than 32 bytes are available
            CipherError: If padding is invalid (wrong password or corrupted data)
        """
        header = CipherHeader.from_bytes(_read_exactly(reader, HEADER_SIZE_BYTES))
        key = self.derive_key(password, header.salt)
        decryptor = Cipher(algorithms.AES(key), modes.CBC(header.iv)).decryptor()
        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()

        try:
            for piece in _read_pieces(reader, self.buffer_size):
                writer.write(unpadder.update(decryptor.update(piece)))
            writer.write(unpadder.update(decryptor.finalize()) + unpadder.finalize())
        except ValueError as e:
            raise CipherError("Decryption failed: wrong password or corrupted data") from e

        return header

    def encrypt_file(self, input_path: PathLike, output_path: PathLike, password: Password) -> EncryptionResult:
        """
        Encrypt a file on disk.

        Raises:
            CipherInputMissingError: If input_path does not exist
            CipherIOError: If reading or writing fails; partial output is removed
        """
        header = self._transform_file(
            input_path, output_path, lambda r, w: self.encrypt_stream(r, w, password), "Input file not found"
        )
        logger.info(f"File encrypted: {input_path} -> {output_path}")
        return EncryptionResult(path=str(output_path), salt=header.salt.hex(), iv=header.iv.hex())

    def decrypt_file(self, input_path: PathLike, output_path: PathLike, password: Password) -> DecryptionResult:
        """
        Decrypt a file produced by encrypt_file or encrypt_buffer.

        Raises:
            CipherInputMissingError: If input_path does not exist
            MalformedHeaderError: If the file is shorter than the header
            CipherError: If decryption fails; partial output is removed
            CipherIOError: If reading or writing fails; partial output is removed
        """
        self._transform_file(
            input_path, output_path, lambda r, w: self.decrypt_stream(r, w, password), "Encrypted file not found"
        )
        logger.info(f"File decrypted: {input_path} -> {output_path}")
        return DecryptionResult(path=str(output_path))

    async def encrypt_file_async(self, input_path: PathLike, output_path: PathLike, password: Password) -> EncryptionResult:
        return await asyncio.to_thread(self.encrypt_file, input_path, output_path, password)

    async def decrypt_file_async(self, input_path: PathLike, output_path: PathLike, password: Password) -> DecryptionResult:
        return await asyncio.to_thread(self.decrypt_file, input_path, output_path, password)

    def encrypt_buffer(self, data: Union[bytes, str], password: Password) -> EncryptedBuffer:
        """
        Encrypt in memory.

        Args:
            data: Plaintext; text is UTF-8 encoded

        Returns:
            EncryptedBuffer whose `encrypted` field is hex(salt || iv || ciphertext)
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        out = io.BytesIO()
        header = self.encrypt_stream(io.BytesIO(data), out, password)
        return EncryptedBuffer(encrypted=out.getvalue().hex(), salt=header.salt.hex(), iv=header.iv.hex())

    def decrypt_buffer(self, encrypted_hex: str, password: Password) -> bytes:
        """
        Decrypt a hex-encoded payload.

        Raises:
            MalformedHeaderError: If the payload is not hex or is shorter than the header
            CipherError: If decryption fails
        """
        try:
            payload = bytes.fromhex(encrypted_hex)
        except ValueError as e:
            raise MalformedHeaderError("Encrypted payload is not valid hex") from e

        out = io.BytesIO()
        self.decrypt_stream(io.BytesIO(payload), out, password)
        return out.getvalue()

    def decrypt_text(self, encrypted_hex: str, password: Password) -> str:
        """Decrypt a hex payload and decode it as UTF-8, replacing invalid bytes."""
        return self.decrypt_buffer(encrypted_hex, password).decode("utf-8", errors="replace")

    def _transform_file(
        self,
        input_path: PathLike,
        output_path: PathLike,
        transform: Callable[[BinaryIO, BinaryIO], CipherHeader],
        missing_message: str,
    ) -> CipherHeader:
        input_path = Path(input_path)
        output_path = Path(output_path)

        if not input_path.is_file():
            raise CipherInputMissingError(f"{missing_message}: {input_path}")
        if _same_file(input_path, output_path):
            raise CipherIOError(f"Input and output are the same file: {input_path}")

        output_opened = False
        try:
            with open(input_path, "rb") as reader:
                with open(output_path, "wb") as writer:
                    output_opened = True
                    return transform(reader, writer)
        except Exception as e:
            logger.error(f"Cipher operation failed for {input_path}: {e}")
            if output_opened:
                _remove_partial(output_path)
            if isinstance(e, OSError):
                raise CipherIOError(f"I/O error while processing {input_path}") from e
            raise
