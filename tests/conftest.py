"""
tests/conftest.py - Shared Test Fixtures
"""

import pytest

from flow.guard import default_cache


@pytest.fixture(autouse=True)
def clear_guardrail_cache():
    """Guardrail verdicts are cached process-wide; isolate each test."""
    default_cache.clear()
    yield
    default_cache.clear()
