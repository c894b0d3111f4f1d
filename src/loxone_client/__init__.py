"""Websocket client for the Loxone Miniserver."""

__version__ = "0.3.0"
