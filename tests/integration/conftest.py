import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def _clear_throttle_history():
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()
    yield
    cache.clear()
