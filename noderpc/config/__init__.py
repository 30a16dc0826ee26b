"""Configuration module for noderpc."""

from noderpc.config.loader import get_config_path, load_config, save_config
from noderpc.config.schema import Config, NetworkConfig, ProxyConfig, RetryConfig

__all__ = [
    "Config",
    "NetworkConfig",
    "ProxyConfig",
    "RetryConfig",
    "get_config_path",
    "load_config",
    "save_config",
]
