"""shpilot suggests shell commands with AI, using a little context about where you are."""

__version__ = "0.1.0"
