from abc import ABC, abstractmethod
from typing import Dict, Optional, Any


class Transport(ABC):
    """Carries an encoded request to a query endpoint and returns the raw body."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}

    @abstractmethod
    async def send(self, method: str, url: str, headers: Optional[Dict[str, str]] = None) -> bytes:
        pass

    @abstractmethod
    def close(self):
        pass
