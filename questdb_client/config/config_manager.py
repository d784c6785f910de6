import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Any, Optional
import yaml

from questdb_client.coding.form_encoder import ArrayEncoding, DateEncodingStrategy, EncoderConfiguration
from questdb_client.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:9000"


@dataclass
class ClientConfig:
    url: str = DEFAULT_URL          # Scheme and host, without a trailing '/'
    array_encoding: str = "bracket"
    array_separator: str = ","
    date_encoding: str = "seconds_since_1970"
    transport: Optional[str] = None
    transport_options: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.url, str) or not self.url.startswith(("http://", "https://")):
            raise ConfigurationError(f"Invalid host '{self.url}': expected an http(s) URL")
        self.url = self.url.rstrip("/")
        if not isinstance(self.transport_options, dict):
            raise ConfigurationError("transport_options must be a mapping")
        # Fail on bad encoder settings at load time rather than on first request.
        self.encoder_configuration()

    @classmethod
    def default(cls) -> "ClientConfig":
        return cls()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    def encoder_configuration(self) -> EncoderConfiguration:
        return EncoderConfiguration(
            array_encoding=ArrayEncoding.from_name(self.array_encoding, self.array_separator),
            date_encoding=DateEncodingStrategy.from_name(self.date_encoding),
        )


class ConfigurationManager:

    def __init__(self, config_dir: str = "configs"):
        self.config_dir = Path(config_dir)

    def _config_path(self, config_name: str) -> Path:
        path = self.config_dir / config_name
        if path.suffix not in (".yaml", ".yml"):
            path = path.with_name(path.name + ".yaml")
        return path

    def load_config(self, config_name: str) -> Dict[str, Any]:

        config_path = self._config_path(config_name)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file {config_path} does not exist")
        try:
            with open(config_path, "r") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to load config file {config_path}: {e}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")
        logger.info(f"Loaded configuration from {config_path}")
        return config

    def load_client_config(self, config_name: str) -> ClientConfig:
        return ClientConfig.from_dict(self.load_config(config_name))
