"""zap — one command for every package manager on the machine."""

__version__ = "0.1.0"
