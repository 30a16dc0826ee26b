"""Pytest hooks and fixtures."""

import pytest

_PROXY_ENV = ("http_proxy", "HTTP_PROXY", "no_proxy", "NO_PROXY")


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.noderpc and from proxy settings of the host."""
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in _PROXY_ENV:
        monkeypatch.delenv(name, raising=False)
    yield tmp_path
