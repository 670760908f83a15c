"""
reStrike Configuration Management

Loads settings from config/default.json with environment variable overrides.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class UdpConfig:
    host: str = "0.0.0.0"
    port: int = 6000
    buffer_size: int = 1024  # Larger datagrams are truncated
    protocol_file: str = ""  # Empty = bundled PSS schema


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False
    enabled: bool = True


@dataclass
class SimulatorConfig:
    enabled: bool = False
    target_host: str = "127.0.0.1"
    round_seconds: int = 120
    rounds: int = 3
    break_seconds: int = 60
    speed_multiplier: float = 10.0


@dataclass
class Config:
    udp: UdpConfig = field(default_factory=UdpConfig)
    web: WebConfig = field(default_factory=WebConfig)
    simulator: SimulatorConfig = field(default_factory=SimulatorConfig)
    debug: bool = False


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from JSON file with environment variable overrides.

    Priority (highest to lowest):
    1. Environment variables (RESTRIKE_*)
    2. Config file values
    3. Default values
    """
    config = Config()

    # Determine config file path
    if config_path is None:
        base_dir = Path(__file__).parent.parent
        config_path = base_dir / "config" / "default.json"
    else:
        config_path = Path(config_path)

    # Load from JSON if exists
    if config_path.exists():
        with open(config_path, "r") as f:
            data = json.load(f)

        if "udp" in data:
            config.udp.host = data["udp"].get("host", config.udp.host)
            config.udp.port = data["udp"].get("port", config.udp.port)
            config.udp.buffer_size = data["udp"].get("buffer_size", config.udp.buffer_size)
            config.udp.protocol_file = data["udp"].get("protocol_file", config.udp.protocol_file)

        if "web" in data:
            config.web.host = data["web"].get("host", config.web.host)
            config.web.port = data["web"].get("port", config.web.port)
            config.web.debug = data["web"].get("debug", config.web.debug)
            config.web.enabled = data["web"].get("enabled", config.web.enabled)

        if "simulator" in data:
            config.simulator.enabled = data["simulator"].get("enabled", config.simulator.enabled)
            config.simulator.target_host = data["simulator"].get("target_host", config.simulator.target_host)
            config.simulator.round_seconds = data["simulator"].get("round_seconds", config.simulator.round_seconds)
            config.simulator.rounds = data["simulator"].get("rounds", config.simulator.rounds)
            config.simulator.break_seconds = data["simulator"].get("break_seconds", config.simulator.break_seconds)
            config.simulator.speed_multiplier = data["simulator"].get("speed_multiplier", config.simulator.speed_multiplier)

        config.debug = data.get("debug", config.debug)

    # Environment variable overrides
    if os.environ.get("RESTRIKE_UDP_HOST"):
        config.udp.host = os.environ["RESTRIKE_UDP_HOST"]
    if os.environ.get("RESTRIKE_UDP_PORT"):
        config.udp.port = int(os.environ["RESTRIKE_UDP_PORT"])
    if os.environ.get("RESTRIKE_UDP_BUFFER_SIZE"):
        config.udp.buffer_size = int(os.environ["RESTRIKE_UDP_BUFFER_SIZE"])
    if os.environ.get("RESTRIKE_PROTOCOL_FILE"):
        config.udp.protocol_file = os.environ["RESTRIKE_PROTOCOL_FILE"]
    if os.environ.get("RESTRIKE_WEB_PORT"):
        config.web.port = int(os.environ["RESTRIKE_WEB_PORT"])
    if os.environ.get("RESTRIKE_WEB_ENABLED"):
        config.web.enabled = _as_bool(os.environ["RESTRIKE_WEB_ENABLED"])
    if os.environ.get("RESTRIKE_SIMULATOR"):
        config.simulator.enabled = _as_bool(os.environ["RESTRIKE_SIMULATOR"])
    if os.environ.get("RESTRIKE_DEBUG"):
        config.debug = _as_bool(os.environ["RESTRIKE_DEBUG"])

    return config


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance, loading it if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Config) -> None:
    """Set the global config instance."""
    global _config
    _config = config
