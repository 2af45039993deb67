"""Custom exception classes for the vault cipher."""


class CipherError(Exception):
    """
    Base exception class for encryption and decryption failures.

    Also raised when ciphertext cannot be decrypted (wrong password or
    corrupted data); CBC mode cannot tell the two apart.
    """
    pass


class CipherInputMissingError(CipherError):
    """
    Raised when the file to encrypt or decrypt does not exist.
    """
    pass


class CipherIOError(CipherError):
    """
    Raised when the input cannot be read or the output cannot be written.
    """
    pass


class MalformedHeaderError(CipherError):
    """
    Raised when a payload is too short to hold the salt/IV header, or a
    buffer-mode payload is not valid hex.
    """
    pass
