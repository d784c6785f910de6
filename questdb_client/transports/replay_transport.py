import hashlib
import os
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit
import logging

import aiofiles

from questdb_client.errors import ConfigurationError, TransportError
from questdb_client.transports.base_transport import Transport

logger = logging.getLogger(__name__)


def recording_key(url: str) -> str:
    """Recordings are keyed by the request path and query string, not the host."""
    parts = urlsplit(url)
    return hashlib.sha1(f"{parts.path}?{parts.query}".encode("utf-8")).hexdigest()


class ReplayTransport(Transport):
    """Serves previously recorded response bodies from a directory."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config=config)
        recordings_dir = self.config.get("recordings_dir")
        if not recordings_dir:
            raise ConfigurationError("Replay transport requires 'recordings_dir'")
        self.recordings_dir = Path(recordings_dir)

    def recording_path(self, url: str) -> Path:
        return self.recordings_dir / f"{recording_key(url)}.json"

    async def send(self, method: str, url: str, headers: Optional[Dict[str, str]] = None) -> bytes:
        path = self.recording_path(url)
        try:
            async with aiofiles.open(path, "rb") as f:
                body = await f.read()
        except FileNotFoundError as e:
            logger.error(f"No recording for {method} {url} (expected {path.name})")
            raise TransportError(f"No recorded response for {url}") from e
        logger.debug(f"Replayed {len(body)} bytes from {path.name}")
        return body

    async def record(self, url: str, body: bytes) -> Path:
        """Store ``body`` as the response for ``url``."""
        os.makedirs(self.recordings_dir, exist_ok=True)
        path = self.recording_path(url)
        async with aiofiles.open(path, "wb") as f:
            await f.write(body)
        logger.info(f"Recorded {len(body)} bytes for {urlsplit(url).path} into {path.name}")
        return path

    def close(self):
        pass
