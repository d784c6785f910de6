from typing import List, Optional, Dict, Any, Union

from questdb_client.errors import ConfigurationError
from questdb_client.transports.base_transport import Transport
from questdb_client.transports.duckdb_transport import DuckDBTransport
from questdb_client.transports.replay_transport import ReplayTransport
from questdb_client.transports.types import TransportType


class TransportFactory:

    _transport_implementations = {
        TransportType.DUCKDB: DuckDBTransport,
        TransportType.REPLAY: ReplayTransport,
    }

    @classmethod
    def create_transport(cls, transport_type: Union[TransportType, str], config: Optional[Dict[str, Any]] = None) -> Transport:
        if isinstance(transport_type, str):
            try:
                transport_type = TransportType(transport_type)
            except ValueError:
                raise ConfigurationError(
                    f"Transport type '{transport_type}' not supported, "
                    f"available: {', '.join(cls.get_supported_transport_types())}"
                )
        if transport_type not in cls._transport_implementations:
            raise ConfigurationError(f"Transport type {transport_type} not supported")

        transport_class = cls._transport_implementations[transport_type]
        return transport_class(config=config)

    @classmethod
    def get_supported_transport_types(cls) -> List[str]:
        return [transport_type.value for transport_type in cls._transport_implementations.keys()]
