"""JSMon CLI: command-line client for the JSMon web-security-scanning API."""

__version__ = "2.0.0"
