"""
Pytest configuration and shared fixtures for afpack tests.

This module provides common fixtures and utilities used across all test modules.
"""

import subprocess

import pytest
from loguru import logger

from afpack.config import settings


@pytest.fixture(autouse=True)
def default_executables(monkeypatch):
    """Pin executable names so AFPACK_* overrides in the environment don't leak in."""
    monkeypatch.setattr(settings, "DISKUTIL_BIN", "diskutil")
    monkeypatch.setattr(settings, "AFSCTOOL_BIN", "afsctool")


@pytest.fixture
def completed():
    """
    Factory for subprocess.CompletedProcess results.

    Returns:
        Callable building a CompletedProcess with the given output.
    """

    def _completed(stdout="", stderr="", returncode=0, args=None):
        return subprocess.CompletedProcess(
            args=args or [], returncode=returncode, stdout=stdout, stderr=stderr
        )

    return _completed


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test."""
    messages = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]), level="DEBUG"
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def in_tmp(tmp_path, monkeypatch):
    """Run the test from inside tmp_path so relative paths like "deps" are isolated."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
