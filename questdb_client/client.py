import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar

from questdb_client.coding.form_encoder import FormEncoder
from questdb_client.config.config_manager import ClientConfig
from questdb_client.errors import (
    ConfigurationError,
    ErrorResponse,
    InvalidJSON,
    MissingResponseData,
    QuestDBError,
    TransportError,
)
from questdb_client.results.query_response import QueryResponse, QuestOperationResponse
from questdb_client.transports.base_transport import Transport
from questdb_client.transports.transport_factory import TransportFactory

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Endpoint(Enum):
    EXECUTE = ("GET", "/exec")

    @property
    def method(self) -> str:
        return self.value[0]

    @property
    def path(self) -> str:
        return self.value[1]


@dataclass
class ExecuteOptions:
    """Parameters of an /exec call, sent as the request query string."""
    query: str
    count: Optional[bool] = False
    limit: Optional[str] = None     # "n" or "lo,hi"
    nm: Optional[bool] = False      # skip column metadata
    timings: Optional[bool] = False


@dataclass
class QuestDBRequest:
    endpoint: Endpoint
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    def build_url(self, config: ClientConfig, encoder: FormEncoder, parameters: Any = None) -> str:
        url = f"{config.url}{self.endpoint.path}"
        if parameters is not None:
            query_string = encoder.encode(parameters)
            url = f"{url}?{query_string}"
        return url


def _error_response(document: Any) -> Optional[ErrorResponse]:
    if not isinstance(document, Mapping):
        return None
    query, error, position = document.get("query"), document.get("error"), document.get("position")
    if isinstance(query, str) and isinstance(error, str) and isinstance(position, int):
        return ErrorResponse(query=query, error=error, position=position)
    return None


class QuestDBClient:
    """Runs queries through an injected transport and decodes the results.

    Request parameters are encoded with a FormEncoder configured from the
    client config; response bodies are parsed as JSON and decoded into
    QueryResponse (or any decoder passed to ``execute_raw``).
    """

    def __init__(self, config: Optional[ClientConfig] = None, transport: Optional[Transport] = None):
        self.config = config or ClientConfig.default()
        self.encoder = FormEncoder(self.config.encoder_configuration())
        if transport is None:
            if not self.config.transport:
                raise ConfigurationError("No transport given and none configured")
            transport = TransportFactory.create_transport(self.config.transport, self.config.transport_options)
        self.transport = transport

    async def __aenter__(self) -> "QuestDBClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    async def execute(self, options: ExecuteOptions) -> QueryResponse:
        return await self.execute_raw(options, QueryResponse.from_json)

    async def execute_as(self, options: ExecuteOptions, target: Type[T]) -> List[T]:
        """Execute and build one ``target`` per row; malformed rows are skipped."""
        response = await self.execute(options)
        return response.decode(target)

    async def execute_operation(self, options: ExecuteOptions) -> QuestOperationResponse:
        return await self.execute_raw(options, QuestOperationResponse.from_json)

    async def execute_raw(self, options: ExecuteOptions, returning: Callable[[Any], T]) -> T:
        body = await self._send(QuestDBRequest(Endpoint.EXECUTE), parameters=options)
        if not body:
            raise MissingResponseData()

        try:
            document = json.loads(body)
        except ValueError as e:
            raise InvalidJSON(f"Response is not valid JSON: {e}") from e

        try:
            return returning(document)
        except QuestDBError as e:
            error_response = _error_response(document)
            if error_response is not None:
                logger.error(f"Query failed at position {error_response.position}: {error_response.error}")
                raise error_response from e
            raise

    async def _send(self, request: QuestDBRequest, parameters: Any = None) -> bytes:
        url = request.build_url(self.config, self.encoder, parameters)
        logger.debug(f"{request.endpoint.method} {url}")
        try:
            return await self.transport.send(request.endpoint.method, url, request.headers)
        except QuestDBError:
            raise
        except Exception as e:
            logger.error(f"Transport failed for {request.endpoint.path}: {e}")
            raise TransportError(f"Request to {request.endpoint.path} failed: {e}") from e
