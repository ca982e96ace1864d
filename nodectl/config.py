"""Configuration management for nodectl.

Configuration is loaded from multiple sources with the following precedence:
1. Explicitly passed parameters (CLI options)
2. Environment variables (NODECTL_<FIELD>, optionally from a .env file)
3. Configuration file
4. Default values
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from nodectl.modules.errors import ConfigError

logger = logging.getLogger("nodectl.config")

# Load environment variables from .env file if it exists
load_dotenv()

ENV_PREFIX = "NODECTL_"

DEFAULT_CONFIG_DIR = Path("~/.nodectl").expanduser()
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"
DEFAULT_LOG_FILE = DEFAULT_CONFIG_DIR / "log" / "nodectl.log"

REQUIRED_FIELDS = ("fqdn", "username", "password")


class Config(BaseModel):
    """Control-plane account and run settings."""
    fqdn: str = Field(default="", description="Controller URL, e.g. https://example.platform9.net")
    username: str = Field(default="", description="Account user name")
    password: str = Field(default="", description="Account password")
    tenant: str = Field(default="service", description="Project the token is scoped to")
    region: str = Field(default="RegionOne", description="Region to install the hostagent from")
    mfa_token: str = Field(default="", description="One-time MFA passcode")
    proxy_url: str = Field(default="", description="HTTP(S) proxy used by the node")
    allow_insecure: bool = Field(default=False, description="Skip TLS verification")
    wait_period: int = Field(default=60, description="Seconds to wait before authorizing a new host")
    settle_delay: int = Field(default=50, description="Seconds to wait after a decommission")
    api_timeout: int = Field(default=30, description="Control-plane request timeout in seconds")
    skip_kube: bool = Field(default=False, description="Install the hostagent without authorizing the host")
    segment_write_key: str = Field(default="", description="Segment write key, telemetry is off when empty")

    model_config = {"extra": "ignore"}

    @field_validator("fqdn")
    @classmethod
    def normalize_fqdn(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("http"):
            v = f"https://{v}"
        return v

    @field_validator("wait_period", "settle_delay", "api_timeout")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    def validate_required(self) -> None:
        """Raise ConfigError if the account settings are incomplete."""
        missing = [name for name in REQUIRED_FIELDS if not getattr(self, name)]
        if missing:
            raise ConfigError(
                f"Missing required configuration: {', '.join(missing)}. "
                "Run 'nodectl config set' first."
            )


class NodeConfig(BaseModel):
    """Remote node the run is executed against. An empty host means the local machine."""
    host: str = ""
    user: str = ""
    password: str = ""
    ssh_key: str = ""
    ssh_passphrase: str = ""
    port: int = 22

    @property
    def is_remote(self) -> bool:
        return bool(self.host)

    def validate_remote(self) -> None:
        if not self.is_remote:
            return
        if not self.user or not (self.password or self.ssh_key):
            raise ConfigError(
                "Invalid remote node config (user and password or ssh key are required), "
                "use 'single quotes' to pass password"
            )


def _load_config_file(path: Path) -> Dict[str, Any]:
    """Load configuration from a YAML file."""
    try:
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return {}


def _env_overrides() -> Dict[str, str]:
    overrides = {}
    for name in Config.model_fields:
        value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            overrides[name] = value
    return overrides


def load_config(config_path: Optional[Union[str, Path]] = None, **overrides: Any) -> Config:
    """Load configuration from file, environment variables and explicit overrides.

    Args:
        config_path: YAML file to read (default: ~/.nodectl/config.yaml)
        **overrides: Values that take precedence over every other source; None is ignored

    Returns:
        Config: The merged configuration

    Raises:
        ConfigError: If the merged values are invalid
    """
    path = Path(config_path).expanduser() if config_path else DEFAULT_CONFIG_PATH
    data: Dict[str, Any] = {}
    if path.exists():
        data = _load_config_file(path)
        logger.debug(f"Loaded config from {path}")

    data.update(_env_overrides())
    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Config(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def save_config(config: Config, config_path: Optional[Union[str, Path]] = None) -> Path:
    """Save configuration to a file readable only by the current user."""
    path = Path(config_path).expanduser() if config_path else DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump(exclude={"mfa_token"})
    with open(path, 'w') as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)
    os.chmod(path, 0o600)
    logger.debug(f"Saved config to {path}")
    return path
