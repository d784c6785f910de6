import asyncio
import datetime
import decimal
import json
import os
import time
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit
import logging

import duckdb

from questdb_client.errors import TransportError
from questdb_client.transports.base_transport import Transport

logger = logging.getLogger(__name__)

EXEC_PATH = "/exec"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return str(value)


def _flag(params: Dict[str, List[str]], name: str) -> bool:
    return params.get(name, ["false"])[0].lower() in ("true", "1")


def apply_limit(rows: List[Any], limit: Optional[str]) -> List[Any]:
    """Apply an /exec ``limit``: ``"n"`` (negative counts from the end) or ``"lo,hi"``."""
    if not limit:
        return rows
    try:
        bounds = [int(part) for part in limit.split(",")]
    except ValueError:
        raise TransportError(f"Invalid limit '{limit}'")
    if len(bounds) == 1:
        n = bounds[0]
        return rows[:n] if n >= 0 else rows[n:]
    if len(bounds) == 2:
        return rows[bounds[0]:bounds[1]]
    raise TransportError(f"Invalid limit '{limit}'")


class DuckDBTransport(Transport):
    """Answers /exec requests from a local DuckDB database.

    Responses follow the /exec JSON layout (query, columns, dataset, count,
    timings), so the client runs unchanged against it.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config=config)

        self.connection = None
        self.lock = asyncio.Lock()
        self.database_path: Optional[str] = None

    def open(self) -> None:
        self.database_path = self.config.get("database_path", ":memory:")
        if self.database_path != ":memory:":
            directory = os.path.dirname(self.database_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        self.connection = duckdb.connect(database=self.database_path)

        # Apply DuckDB-specific settings if configured
        duckdb_settings = self.config.get("duckdb_settings", {})
        for setting, value in duckdb_settings.items():
            self.connection.sql(f"SET {setting} = '{value}'")
        logger.info(f"DuckDB transport opened on {self.database_path}")

    async def send(self, method: str, url: str, headers: Optional[Dict[str, str]] = None) -> bytes:
        parts = urlsplit(url)
        if method != "GET" or parts.path != EXEC_PATH:
            raise TransportError(f"Unsupported request {method} {parts.path}")

        params = parse_qs(parts.query, keep_blank_values=True)
        query = params.get("query", [""])[0]
        if not query.strip():
            return self._encode({"query": query, "error": "empty query", "position": 0})

        if self.connection is None:
            self.open()

        async with self.lock:
            start_time = time.perf_counter_ns()
            try:
                relation = self.connection.sql(query)
                if relation is None:
                    body = {"ddl": "OK"}
                else:
                    column_names = relation.columns
                    column_types = [str(t).upper() for t in relation.types]
                    rows = relation.fetchall()
                    body = None
            except duckdb.Error as e:
                logger.error(f"DuckDB query failed: {e}")
                logger.error(f"Failed SQL (first 200 chars): {query[:200]}")
                return self._encode({"query": query, "error": str(e), "position": -1})
            execute_time = time.perf_counter_ns() - start_time

        if body is not None:
            return self._encode(body)

        limited = apply_limit(rows, params.get("limit", [None])[0])
        body = {"query": query}
        if not _flag(params, "nm"):
            body["columns"] = [{"name": n, "type": t} for n, t in zip(column_names, column_types)]
        body["dataset"] = [list(row) for row in limited]
        if _flag(params, "count"):
            body["count"] = len(rows)
        if _flag(params, "timings"):
            body["timings"] = {"compiler": 0, "count": 0, "execute": execute_time}

        logger.debug(f"Answered /exec with {len(limited)} of {len(rows)} rows in {execute_time}ns")
        return self._encode(body)

    @staticmethod
    def _encode(body: Dict[str, Any]) -> bytes:
        return json.dumps(body, default=_json_default).encode("utf-8")

    def close(self):
        if self.connection is not None:
            logger.info(f"Closing DuckDB transport on {self.database_path}")
            self.connection.close()
            self.connection = None
