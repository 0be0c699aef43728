"""CLI module for browser-console-tap.

This package provides the command-line interface: configuration loading,
the capture runner with its exit codes, and terminal rendering.
"""

from .config import (
    # Configuration
    ConfigurationError,
    ConfigurationLoader,
    TapConfig,
    load_configuration,
    validate_url,
)
from .render import ConsoleRenderer
from .runner import (
    # Exit codes
    ExitCode,

    # Runner
    TapRunner,
)

__all__ = [
    # Configuration
    'ConfigurationError',
    'ConfigurationLoader',
    'TapConfig',
    'load_configuration',
    'validate_url',

    # Output
    'ConsoleRenderer',

    # Exit codes
    'ExitCode',

    # Runner
    'TapRunner',
]
