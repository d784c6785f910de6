from enum import Enum


class TransportType(Enum):
    """
    Enumeration of transports the client can be wired to.
    """
    DUCKDB = "duckdb"
    REPLAY = "replay"
