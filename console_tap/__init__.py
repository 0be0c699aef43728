"""browser-console-tap: capture browser console output and network activity for a URL."""

__version__ = "1.0.0"
