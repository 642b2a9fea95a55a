"""Tests for SyncBroadcaster/SyncReceiver over LocalTransport: full sync, deltas, convergence."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from modhost.extensions import Environment, ExtensionRegistry, InitialiseFailure, Plugin
from modhost.net import LocalTransport, PluginEnable, PluginSync, SyncBroadcaster, SyncReceiver
from tests.sources import COUNTING_PLUGIN, EXTEND_ONLY

SLOW_PLUGIN = '''
import asyncio

from modhost.extensions import Plugin

class Slow(Plugin):
    result = True

    async def initialise(self):
        await asyncio.sleep(0.05)
        return self.result

def setup(builder):
    builder.register(Slow())
'''

FAILING_SEGMENT = '''
class Failing:
    result = False

def setup(builder):
    builder.extend(Failing)
'''


async def _pair(write_ext, make_manager, names=("a", "b")):
    """Server and client managers over the same files, wired through a LocalTransport."""
    for name in names:
        write_ext(f"{name}/shared.py", COUNTING_PLUGIN, name=name)
        write_ext(f"{name}/server.py", EXTEND_ONLY, side="server")
        write_ext(f"{name}/client.py", EXTEND_ONLY, side="client")
    server = make_manager(Environment.SERVER)
    client = make_manager(Environment.CLIENT)
    transport = LocalTransport()
    sync = SyncBroadcaster(transport, server.registry, server.catalog.shared_extensions())
    server.set_sync_broadcaster(sync)
    transport.set_connect_handler(sync.send_full_sync)
    await server.preload()
    await client.preload()
    return server, client, transport


def _state(manager, names=("a", "b")) -> dict[str, bool]:
    return manager.registry.enabled_map(names)


class TestFullSync:
    async def test_connect_mirrors_server_state(self, write_ext, make_manager) -> None:
        server, client, transport = await _pair(write_ext, make_manager)
        await server.enable("a")
        await transport.connect("peer-1", SyncReceiver(client).handle)
        assert _state(client) == {"a": True, "b": False}
        assert client.registry.lookup("a").side == "client"

    async def test_false_entry_disables_after_reconnect(self, write_ext, make_manager) -> None:
        server, client, transport = await _pair(write_ext, make_manager)
        receiver = SyncReceiver(client)
        await client.enable("b")
        await receiver.handle(PluginSync(plugins={"a": True, "b": False}))
        assert _state(client) == {"a": True, "b": False}

    async def test_unknown_entry_is_logged_and_others_apply(
        self, write_ext, make_manager, caplog
    ) -> None:
        _server, client, _transport = await _pair(write_ext, make_manager)
        receiver = SyncReceiver(client)
        with caplog.at_level(logging.ERROR):
            await receiver.handle(PluginSync(plugins={"ghost": True, "a": True}))
        assert client.registry.is_enabled("a")
        assert "ghost" in caplog.text


class TestDeltas:
    async def test_toggles_converge(self, write_ext, make_manager) -> None:
        server, client, transport = await _pair(write_ext, make_manager)
        await transport.connect("peer-1", SyncReceiver(client).handle)
        await server.enable("a")
        assert _state(client) == _state(server) == {"a": True, "b": False}
        await server.enable("b")
        await server.disable("a")
        assert _state(client) == _state(server) == {"a": False, "b": True}

    async def test_reset_on_server_reinitialises_peer(self, write_ext, make_manager) -> None:
        server, client, transport = await _pair(write_ext, make_manager)
        await transport.connect("peer-1", SyncReceiver(client).handle)
        await server.enable("a")
        await server.enable("a")
        peer_plugin = client.registry.lookup("a")
        assert peer_plugin.enabled
        assert peer_plugin.initialised == 2
        assert list(peer_plugin.commands) == ["sh_a"]

    async def test_peer_connecting_during_initialise_converges(
        self, write_ext, make_manager
    ) -> None:
        write_ext("slow/shared.py", SLOW_PLUGIN)
        server, client, transport = await _pair(write_ext, make_manager)
        enabling = asyncio.create_task(server.enable("slow"))
        await asyncio.sleep(0.01)
        await transport.connect("peer-1", SyncReceiver(client).handle)
        await enabling
        assert server.registry.is_enabled("slow")
        assert client.registry.is_enabled("slow")

    async def test_failed_initialise_reverts_peer_that_connected_meanwhile(
        self, write_ext, make_manager
    ) -> None:
        write_ext("slow/shared.py", SLOW_PLUGIN)
        write_ext("slow/server.py", FAILING_SEGMENT)
        server, client, transport = await _pair(write_ext, make_manager)
        enabling = asyncio.create_task(server.enable("slow"))
        await asyncio.sleep(0.01)
        await transport.connect("peer-1", SyncReceiver(client).handle)
        with pytest.raises(InitialiseFailure):
            await enabling
        assert not server.registry.is_enabled("slow")
        assert not client.registry.is_enabled("slow")

    async def test_every_peer_receives_deltas(self, write_ext, make_manager) -> None:
        server, client, transport = await _pair(write_ext, make_manager)
        other = AsyncMock()
        await transport.connect("peer-1", SyncReceiver(client).handle)
        await transport.connect("peer-2", other)
        await server.enable("b")
        assert other.await_args_list[-1].args[0] == PluginEnable(plugin="b", enabled=True)
        await transport.disconnect("peer-2")
        assert transport.peers() == ["peer-1"]


class TestBroadcaster:
    def _broadcaster(self, names=("chat",)):
        registry = ExtensionRegistry()
        transport = MagicMock()
        transport.peers.return_value = ["peer-1"]
        transport.broadcast = AsyncMock()
        transport.send = AsyncMock()
        return SyncBroadcaster(transport, registry, names), registry, transport

    async def test_skips_names_outside_shared_set(self) -> None:
        sync, _registry, transport = self._broadcaster()
        await sync.broadcast_state("admin", True)
        transport.broadcast.assert_not_awaited()

    async def test_skips_without_peers(self) -> None:
        sync, _registry, transport = self._broadcaster()
        transport.peers.return_value = []
        await sync.broadcast_state("chat", True)
        transport.broadcast.assert_not_awaited()

    async def test_plugin_data(self) -> None:
        sync, registry, transport = self._broadcaster(("chat", "votes"))
        plugin = Plugin()
        plugin.enabled = True
        registry.register("chat", plugin)
        assert sync.build_plugin_data() == {"chat": True, "votes": False}
        await sync.send_full_sync("peer-1")
        transport.send.assert_awaited_once_with(
            "peer-1", PluginSync(plugins={"chat": True, "votes": False})
        )

    async def test_announced_enable_counts_until_settled(self) -> None:
        sync, registry, _transport = self._broadcaster(("chat", "votes"))
        registry.register("votes", Plugin())
        await sync.broadcast_state("votes", True)
        assert sync.build_plugin_data() == {"chat": False, "votes": True}
        sync.enable_settled("votes")
        assert sync.build_plugin_data() == {"chat": False, "votes": False}
        await sync.broadcast_state("votes", True)
        await sync.broadcast_state("votes", False)
        assert sync.build_plugin_data()["votes"] is False
