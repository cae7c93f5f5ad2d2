"""
Configuration module for webhook-dns.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from webhook_dns.models.models import DomainFilter

_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


class Config(BaseModel):
    """Configuration for a webhook server process and its clients."""

    # Server configuration
    server_host: str = "127.0.0.1"
    server_port: int = 8888

    # Provider configuration
    provider_factory: str = "webhook_dns.provider.memory:InMemoryProvider"
    provider_options: Dict[str, Any] = Field(default_factory=dict)

    # Domain filtering
    domain_filter: List[str] = Field(default_factory=list)
    exclude_domains: List[str] = Field(default_factory=list)
    regex_domain_filter: Optional[str] = None
    regex_domain_exclusion: Optional[str] = None

    # Client configuration
    client_url: str = "http://localhost:8888"
    client_timeout: str = "10s"
    client_refresh_interval: str = ""

    # Logging configuration
    log_level: str = "info"

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate the port is in range"""
        if not 0 <= v <= 65535:
            raise ValueError("Port must be between 0 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate the log level is a known level name"""
        if v.lower() not in _LOG_LEVELS:
            raise ValueError(f"Log level must be one of {', '.join(_LOG_LEVELS)}")
        return v.lower()

    @classmethod
    def from_yaml(cls, config_path: Optional[Union[str, Path]] = None) -> "Config":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Config: Config instance populated with values from the YAML file
        """
        # Default configuration paths to check
        default_paths = [
            Path("./webhook-dns.yaml"),
            Path("./webhook-dns.yml"),
            Path("/etc/webhook-dns/webhook-dns.yaml"),
            Path("/etc/webhook-dns/config.yaml"),
        ]

        if config_path:
            paths = [Path(config_path)]
        else:
            paths = default_paths

        # Try to load configuration from the first existing path
        config_data = {}
        for path in paths:
            if path.exists():
                with open(path, "r") as f:
                    yaml_content = cls._substitute_env_vars(f.read())
                    config_data = yaml.safe_load(yaml_content) or {}
                logging.getLogger("webhook-dns.config").debug(
                    f"Loaded configuration from {path}"
                )
                break

        return cls(**cls._flatten_config(config_data))

    @staticmethod
    def _substitute_env_vars(content: str) -> str:
        """
        Substitute environment variables in the configuration content.

        Args:
            content: Configuration content

        Returns:
            str: Configuration content with environment variables substituted
        """
        # Pattern for ${ENV_VAR} or ${ENV_VAR:-default}
        pattern = r"\${([^}]+)}"

        def replace_env_var(match):
            env_var = match.group(1)
            if ":-" in env_var:
                env_var, default = env_var.split(":-", 1)
                return os.environ.get(env_var, default)
            return os.environ.get(env_var, "")

        return re.sub(pattern, replace_env_var, content)

    @staticmethod
    def _flatten_config(config_data: dict) -> dict:
        """
        Flatten nested configuration.

        Args:
            config_data: Nested configuration data

        Returns:
            dict: Flattened configuration data
        """
        flat_config = {}

        server = config_data.get("server") or {}
        flat_config["server_host"] = server.get("host", "127.0.0.1")
        flat_config["server_port"] = server.get("port", 8888)

        provider = config_data.get("provider") or {}
        flat_config["provider_factory"] = provider.get(
            "factory", "webhook_dns.provider.memory:InMemoryProvider"
        )
        flat_config["provider_options"] = provider.get("options") or {}

        domains = config_data.get("domains") or {}
        flat_config["domain_filter"] = domains.get("include") or []
        flat_config["exclude_domains"] = domains.get("exclude") or []
        flat_config["regex_domain_filter"] = domains.get("regex_include")
        flat_config["regex_domain_exclusion"] = domains.get("regex_exclude")

        client = config_data.get("client") or {}
        flat_config["client_url"] = client.get("url", "http://localhost:8888")
        flat_config["client_timeout"] = str(client.get("timeout", "10s"))
        flat_config["client_refresh_interval"] = str(
            client.get("refresh_interval") or ""
        )

        logging_config = config_data.get("logging") or {}
        flat_config["log_level"] = logging_config.get("level", "info")

        return flat_config

    def build_domain_filter(self) -> DomainFilter:
        """
        Build the DomainFilter announced by the server.

        Returns:
            DomainFilter: Configured domain filter
        """
        return DomainFilter(
            include=tuple(self.domain_filter),
            exclude=tuple(self.exclude_domains),
            regex_include=self.regex_domain_filter or None,
            regex_exclude=self.regex_domain_exclusion or None,
        )

    def parse_duration(self, duration_str: str) -> int:
        """
        Parse a duration string like '15m' into seconds.

        Args:
            duration_str: Duration string, a bare number means seconds

        Returns:
            int: Duration in seconds
        """
        if not duration_str:
            return 60  # Default to 1 minute

        # Pattern for duration string (e.g., 15m, 1h, 30s)
        match = re.match(r"^(\d+)([smhd]?)$", duration_str.strip())
        if not match:
            return 60  # Default to 1 minute

        value, unit = match.groups()
        value = int(value)

        if unit in ("", "s"):
            return value
        elif unit == "m":
            return value * 60
        elif unit == "h":
            return value * 60 * 60
        return value * 60 * 60 * 24
