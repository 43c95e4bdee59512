from __future__ import annotations

import socket

import pytest


@pytest.fixture
def free_port() -> int:
    """Get a free local port for a listener that must know its port up front."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]
