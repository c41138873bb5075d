"""Shared pytest fixtures for depwatch tests."""

import pytest


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"
