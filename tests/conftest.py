"""Shared fixtures."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from questdb_client.transports.base_transport import Transport


@pytest.fixture
def work_dir():
    """Create a temporary working directory."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


class StubTransport(Transport):
    """Returns canned bodies and remembers the requests it was given."""

    def __init__(self, bodies: Optional[List[bytes]] = None, error: Optional[Exception] = None):
        super().__init__()
        self.bodies = list(bodies or [])
        self.error = error
        self.requests: List[tuple] = []
        self.closed = False

    async def send(self, method: str, url: str, headers: Optional[Dict[str, str]] = None) -> bytes:
        self.requests.append((method, url))
        if self.error is not None:
            raise self.error
        return self.bodies.pop(0)

    def close(self):
        self.closed = True


@pytest.fixture
def stub_transport_class():
    return StubTransport
