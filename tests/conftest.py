"""Shared fixtures."""

import pytest

from common import http_client
from context import GlobalContext


@pytest.fixture
def make_ctx(tmp_path):
    """Build a GlobalContext rooted in a temporary directory."""
    def _make(config=None, env=None, cwd=None, **options):
        home = tmp_path / "cargo-home"
        home.mkdir(exist_ok=True)
        return GlobalContext(
            cwd=cwd or tmp_path,
            cargo_home=home,
            config=config or {},
            env=env or {},
            **options,
        )
    return _make


@pytest.fixture(autouse=True)
def _clear_http_cache():
    http_client.clear_cache()
    yield
    http_client.clear_cache()
