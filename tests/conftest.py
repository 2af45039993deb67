"""Shared pytest fixtures for all tests."""

import pytest

from ingest.progress import NeverFail, ProgressEstimator
from ingest.quota_ledger import QuotaLedger
from ingest.registry import FileRegistry
from vault.stream_cipher import StreamCipher

MIB = 1024 * 1024


@pytest.fixture
def ledger():
    """
    Ledger with a 100 MiB default quota.
    """
    return QuotaLedger(default_quota_bytes=100 * MIB)


@pytest.fixture
def registry():
    return FileRegistry()


@pytest.fixture
def fast_estimator():
    """
    Estimator whose whole simulated duration is at most 20ms.

    Returns:
        ProgressEstimator with 10 steps
    """
    return ProgressEstimator(steps=10, min_duration_ms=0, max_duration_ms=20)


@pytest.fixture
def never_fail():
    return NeverFail()


@pytest.fixture
def cipher():
    return StreamCipher()


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a small plaintext file.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'plain.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def large_file(tmp_path):
    """
    Create a file spanning several stream buffers, not block aligned.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to binary file of 200 KiB + 7 bytes
    """
    file_path = tmp_path / 'large.bin'
    file_path.write_bytes(bytes(range(256)) * 800 + b'tail!!!')
    return file_path
