"""Sync protocol: messages, transports, broadcaster and receiver."""

from modhost.net.messages import PluginEnable, PluginSync, ProtocolError, decode, encode
from modhost.net.sync import SyncBroadcaster, SyncReceiver
from modhost.net.transport import LocalTransport, StreamClient, StreamServer, Transport

__all__ = [
    "LocalTransport",
    "PluginEnable",
    "PluginSync",
    "ProtocolError",
    "StreamClient",
    "StreamServer",
    "SyncBroadcaster",
    "SyncReceiver",
    "Transport",
    "decode",
    "encode",
]
