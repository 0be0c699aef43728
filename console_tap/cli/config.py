"""Configuration system for browser-console-tap with proper precedence handling.

Configuration is merged from several sources, highest precedence first:
CLI flags > environment variables > config file > defaults
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..capture.diagnostics import DEFAULT_STALE_THRESHOLD_MS
from ..capture.formatting import DEFAULT_MAX_LENGTH


class ConfigurationError(Exception):
    """Raised when configuration input is invalid."""


LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_int(value: Any) -> Any:
    """Leading integer of value, so "3.5" and "100ms" read as 3 and 100."""
    if isinstance(value, bool):
        raise ValueError("not a number")
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        match = LEADING_INT.match(value)
        if match is None:
            raise ValueError("not a number")
        return int(match.group(1))
    return value


class BrowserSettings(BaseModel):
    """Browser launch options."""
    headless: bool = Field(default=True, description="Run browser without a window")
    user_agent: Optional[str] = Field(default=None, description="Custom User-Agent string")
    extra_headers: Dict[str, str] = Field(default_factory=dict, description="Extra HTTP headers")

    @field_validator('extra_headers', mode='before')
    @classmethod
    def parse_headers(cls, v):
        if v is None:
            return {}
        original = v
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                v = None
        if not isinstance(v, dict):
            raise ValueError(f'Invalid headers format "{original}". Must be valid JSON.')
        return {str(key): str(value) for key, value in v.items()}


class CaptureSettings(BaseModel):
    """Observation window and network tracking options."""
    delay_ms: int = Field(default=3000, description="Observation window after page load")
    timeout_ms: int = Field(default=30000, description="Page load timeout")
    track_network: bool = Field(default=False, description="Track network requests")
    network_verbose: bool = Field(default=False, description="Detailed network listing")
    stale_threshold_ms: int = Field(
        default=DEFAULT_STALE_THRESHOLD_MS, ge=0, description="Pending age that counts as stuck"
    )
    max_value_length: int = Field(
        default=DEFAULT_MAX_LENGTH, ge=1, description="Limit for displayed values"
    )
    fail_status: int = Field(
        default=400, ge=100, le=599, description="Lowest HTTP status counted as failed"
    )

    @field_validator('delay_ms', mode='before')
    @classmethod
    def validate_delay(cls, v):
        try:
            v = _parse_int(v)
        except (TypeError, ValueError):
            raise ValueError(f'Invalid delay "{v}". Must be a positive number.')
        if not isinstance(v, int) or v < 0:
            raise ValueError(f'Invalid delay "{v}". Must be a positive number.')
        return v

    @field_validator('timeout_ms', mode='before')
    @classmethod
    def validate_timeout(cls, v):
        try:
            v = _parse_int(v)
        except (TypeError, ValueError):
            raise ValueError(f'Invalid timeout "{v}". Must be at least 1000ms.')
        if not isinstance(v, int) or v < 1000:
            raise ValueError(f'Invalid timeout "{v}". Must be at least 1000ms.')
        return v

    @model_validator(mode='after')
    def verbose_implies_tracking(self):
        if self.network_verbose:
            self.track_network = True
        return self


class OutputSettings(BaseModel):
    """Output configuration options."""
    verbose: bool = Field(default=False, description="Verbose output and debug logging")
    json_output: bool = Field(default=False, description="Print the result as JSON")
    color: bool = Field(default=True, description="Colorize terminal output")


class TapConfig(BaseModel):
    """Complete configuration with all sections."""

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    capture: CaptureSettings = Field(default_factory=CaptureSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)

    # Metadata
    config_file_path: Optional[Path] = Field(default=None, description="Source config file")
    loaded_from: List[str] = Field(default_factory=list, description="Configuration sources")


def validate_url(url: Optional[str]) -> str:
    """Check that url is absolute (scheme and host present).

    Raises:
        ConfigurationError: If the URL is missing or malformed
    """
    if not url:
        raise ConfigurationError("URL is required")
    try:
        parsed = urlparse(url)
    except ValueError:
        parsed = None
    if parsed is None or not parsed.scheme or not parsed.netloc:
        raise ConfigurationError(f'Invalid URL "{url}"')
    return url


def _validation_message(error: ValidationError) -> str:
    """First validation error as a single readable line."""
    first = error.errors()[0]
    ctx_error = first.get("ctx", {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid {location}: {first.get('msg')}" if location else str(first.get("msg"))


class ConfigurationLoader:
    """Loads and merges configuration from multiple sources with proper precedence."""

    # Environment variable prefix
    ENV_PREFIX = "CONSOLE_TAP_"

    # Default configuration file names (searched in order)
    DEFAULT_CONFIG_FILES = [
        "console-tap.yaml",
        "console-tap.yml",
        ".console-tap.yaml",
        ".console-tap.yml",
    ]

    ENV_MAPPING = {
        "HEADLESS": "browser.headless",
        "USER_AGENT": "browser.user_agent",
        "HEADERS": "browser.extra_headers",
        "DELAY_MS": "capture.delay_ms",
        "TIMEOUT_MS": "capture.timeout_ms",
        "NETWORK": "capture.track_network",
        "NETWORK_VERBOSE": "capture.network_verbose",
        "STALE_MS": "capture.stale_threshold_ms",
        "MAX_LENGTH": "capture.max_value_length",
        "FAIL_STATUS": "capture.fail_status",
        "VERBOSE": "output.verbose",
        "JSON": "output.json_output",
        "COLOR": "output.color",
    }

    BOOLEAN_PATHS = {
        "browser.headless",
        "capture.track_network",
        "capture.network_verbose",
        "output.verbose",
        "output.json_output",
        "output.color",
    }

    def __init__(self):
        self.loaded_sources: List[str] = []

    def load_configuration(
        self,
        config_file: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        search_paths: Optional[List[Path]] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> TapConfig:
        """Load configuration with proper precedence.

        Args:
            config_file: Explicitly specified config file
            cli_overrides: CLI flag overrides (nested by section)
            search_paths: Paths to search for config files
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Merged configuration

        Raises:
            ConfigurationError: If any source is unreadable or a value is invalid
        """
        self.loaded_sources = ["defaults"]
        config_data: Dict[str, Any] = {}

        if config_file:
            if not config_file.exists():
                raise ConfigurationError(f"Configuration file not found: {config_file}")
            config_data = self._merge_config(config_data, self._load_config_file(config_file))
            self.loaded_sources.append(f"config file: {config_file}")
        else:
            discovered = self._discover_config_file(search_paths or [Path.cwd()])
            if discovered:
                path, file_config = discovered
                config_data = self._merge_config(config_data, file_config)
                self.loaded_sources.append(f"auto-discovered: {path}")

        env_config = self._load_environment_variables(os.environ if environ is None else environ)
        if env_config:
            config_data = self._merge_config(config_data, env_config)
            self.loaded_sources.append("environment variables")

        if cli_overrides:
            config_data = self._merge_config(config_data, cli_overrides)
            self.loaded_sources.append("CLI flags")

        config_data["loaded_from"] = self.loaded_sources
        if config_file:
            config_data["config_file_path"] = config_file

        try:
            return TapConfig(**config_data)
        except ValidationError as e:
            raise ConfigurationError(_validation_message(e)) from e

    def _discover_config_file(self, search_paths: List[Path]) -> Optional[tuple]:
        """Return (path, data) for the first config file found in search paths."""
        for search_path in search_paths:
            for config_filename in self.DEFAULT_CONFIG_FILES:
                config_path = search_path / config_filename
                if config_path.exists() and config_path.is_file():
                    return config_path, self._load_config_file(config_path)
        return None

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML file."""
        try:
            content = config_path.read_text(encoding='utf-8')
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file {config_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error loading config file {config_path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")
        return data

    def _load_environment_variables(self, environ: Dict[str, str]) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        for suffix, config_path in self.ENV_MAPPING.items():
            env_value = environ.get(f"{self.ENV_PREFIX}{suffix}")
            if env_value is not None:
                self._set_nested_value(config, config_path, self._convert_env_value(env_value, config_path))

        return config

    def _convert_env_value(self, value: str, config_path: str) -> Any:
        """Convert environment variable string to appropriate type."""
        if config_path in self.BOOLEAN_PATHS:
            return value.lower() in ('true', '1', 'yes', 'on')
        return value

    def _set_nested_value(self, config: Dict[str, Any], path: str, value: Any):
        """Set a nested configuration value using dot notation."""
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            current = current.setdefault(key, {})

        current[keys[-1]] = value

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge configuration dictionaries, with override taking precedence."""
        if not override:
            return base

        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result


def load_configuration(
    config_file: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    search_paths: Optional[List[Path]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> TapConfig:
    """Convenience function to load configuration.

    Args:
        config_file: Path to configuration file
        cli_overrides: CLI flag overrides
        search_paths: Paths to search for config files
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Loaded and merged configuration
    """
    loader = ConfigurationLoader()
    return loader.load_configuration(config_file, cli_overrides, search_paths, environ)
