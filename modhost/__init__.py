"""modhost: extension lifecycle, config and state sync for a game server mod."""

__version__ = "0.1.0"
