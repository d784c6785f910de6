"""Tests for the client request/response pipeline."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass

import pytest

from questdb_client.client import Endpoint, ExecuteOptions, QuestDBClient, QuestDBRequest
from questdb_client.coding.form_encoder import FormEncoder
from questdb_client.config.config_manager import ClientConfig
from questdb_client.errors import (
    ConfigurationError,
    DecodingFailure,
    ErrorResponse,
    InvalidJSON,
    MissingResponseData,
    TransportError,
)
from questdb_client.results.query_response import QuestOperationResponse


def _body(document) -> bytes:
    return json.dumps(document).encode("utf-8")


POINTS = _body({
    "query": "select x, y from points",
    "columns": [{"name": "x", "type": "INT"}, {"name": "y", "type": "INT"}],
    "dataset": [[1, 2], [3, 4]],
})


@dataclass
class Point:
    x: int
    y: int


class TestRequest:
    def test_execute_endpoint(self):
        assert Endpoint.EXECUTE.method == "GET"
        assert Endpoint.EXECUTE.path == "/exec"

    def test_build_url(self):
        config = ClientConfig(url="http://db:9000/")
        url = QuestDBRequest(Endpoint.EXECUTE).build_url(
            config, FormEncoder(), ExecuteOptions(query="select 1", limit="10")
        )
        assert url == "http://db:9000/exec?query=select%201&count=false&limit=10&nm=false&timings=false"

    def test_build_url_without_parameters(self):
        assert QuestDBRequest(Endpoint.EXECUTE).build_url(ClientConfig(), FormEncoder()) == (
            "http://localhost:9000/exec"
        )


class TestExecute:
    def test_execute_sends_encoded_options(self, stub_transport_class):
        transport = stub_transport_class([POINTS])
        client = QuestDBClient(transport=transport)
        response = asyncio.run(client.execute(ExecuteOptions(query="select x, y from points", count=True)))
        assert response.rows == [{"x": 1, "y": 2}, {"x": 3, "y": 4}]
        method, url = transport.requests[0]
        assert method == "GET"
        assert url == (
            "http://localhost:9000/exec?query=select%20x,%20y%20from%20points"
            "&count=true&nm=false&timings=false"
        )

    def test_execute_as(self, stub_transport_class):
        client = QuestDBClient(transport=stub_transport_class([POINTS]))
        points = asyncio.run(client.execute_as(ExecuteOptions(query="q"), Point))
        assert points == [Point(1, 2), Point(3, 4)]

    def test_execute_operation(self, stub_transport_class):
        client = QuestDBClient(transport=stub_transport_class([_body({"ddl": "OK"})]))
        result = asyncio.run(client.execute_operation(ExecuteOptions(query="create table t (x int)")))
        assert result == QuestOperationResponse(ddl="OK")

    def test_execute_raw(self, stub_transport_class):
        client = QuestDBClient(transport=stub_transport_class([_body({"anything": [1]})]))
        assert asyncio.run(client.execute_raw(ExecuteOptions(query="q"), lambda doc: doc["anything"])) == [1]

    def test_configured_array_encoding(self, stub_transport_class):
        transport = stub_transport_class([_body({"ok": True})])
        client = QuestDBClient(config=ClientConfig(array_encoding="separator"), transport=transport)
        asyncio.run(client.execute_raw({"query": "q", "cols": ["a", "b"]}, lambda doc: doc))
        assert transport.requests[0][1].endswith("?query=q&cols=a,b")


class TestErrors:
    def test_server_error_document(self, stub_transport_class):
        body = _body({"query": "selec 1", "error": "unexpected token", "position": 0})
        client = QuestDBClient(transport=stub_transport_class([body]))
        with pytest.raises(ErrorResponse) as exc_info:
            asyncio.run(client.execute(ExecuteOptions(query="selec 1")))
        assert exc_info.value.error == "unexpected token"
        assert exc_info.value.position == 0
        assert exc_info.value.query == "selec 1"

    def test_decode_error_without_error_document(self, stub_transport_class):
        client = QuestDBClient(transport=stub_transport_class([_body({"query": "q"})]))
        with pytest.raises(DecodingFailure):
            asyncio.run(client.execute(ExecuteOptions(query="q")))

    def test_empty_body(self, stub_transport_class):
        client = QuestDBClient(transport=stub_transport_class([b""]))
        with pytest.raises(MissingResponseData):
            asyncio.run(client.execute(ExecuteOptions(query="q")))

    def test_invalid_json(self, stub_transport_class):
        client = QuestDBClient(transport=stub_transport_class([b"<html>"]))
        with pytest.raises(InvalidJSON):
            asyncio.run(client.execute(ExecuteOptions(query="q")))

    def test_transport_failure_wrapped(self, stub_transport_class):
        client = QuestDBClient(transport=stub_transport_class(error=OSError("connection refused")))
        with pytest.raises(TransportError) as exc_info:
            asyncio.run(client.execute(ExecuteOptions(query="q")))
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_no_transport(self):
        with pytest.raises(ConfigurationError):
            QuestDBClient()


class TestLifecycle:
    def test_async_context_closes_transport(self, stub_transport_class):
        transport = stub_transport_class([POINTS])

        async def run():
            async with QuestDBClient(transport=transport) as client:
                return await client.execute(ExecuteOptions(query="q"))

        asyncio.run(run())
        assert transport.closed

    def test_transport_from_config(self):
        client = QuestDBClient(config=ClientConfig(transport="duckdb"))
        try:
            assert type(client.transport).__name__ == "DuckDBTransport"
        finally:
            client.close()
