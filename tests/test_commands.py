"""Tests for CommandRegistry: registration, argument parsing, access, console and chat dispatch."""

import logging
from unittest.mock import MagicMock

import pytest

from modhost.commands import AdminListPermissions, CommandError, CommandRegistry
from modhost.game import HeadlessServer, Team


@pytest.fixture
def game() -> HeadlessServer:
    server = HeadlessServer()
    server.add_client("Alice", user_id=100, team=Team.MARINES)
    server.add_client("Bob", user_id=200, team=Team.ALIENS)
    server.add_client("Bobby", user_id=300)
    return server


@pytest.fixture
def out() -> list[tuple]:
    return []


@pytest.fixture
def registry(game: HeadlessServer, out: list) -> CommandRegistry:
    return CommandRegistry(
        permissions=AdminListPermissions([100]),
        game=game,
        printer=lambda client, message: out.append((client, message)),
    )


class TestRegistration:
    def test_register_and_remove(self, registry: CommandRegistry) -> None:
        registry.register("sh_kick", ["kick", "Boot"], MagicMock())
        assert "sh_kick" in registry
        assert registry.names() == ["sh_kick"]
        registry.remove("sh_kick")
        registry.remove("sh_kick")
        assert "sh_kick" not in registry
        assert registry.get("sh_kick") is None

    def test_rebinding_replaces(self, registry: CommandRegistry, caplog) -> None:
        first = registry.register("sh_say", "say", MagicMock())
        with caplog.at_level(logging.WARNING):
            second = registry.register("sh_say", "say", MagicMock())
        assert registry.get("sh_say") is second
        assert second is not first
        assert "already bound" in caplog.text

    def test_unknown_param_type(self, registry: CommandRegistry) -> None:
        command = registry.register("sh_x", None, MagicMock())
        with pytest.raises(ValueError):
            command.add_param("vector")

    def test_chainable_help(self, registry: CommandRegistry) -> None:
        command = registry.register("sh_x", None, MagicMock()).add_param("string").help("Does x.")
        assert command.help_text == "Does x."
        assert len(command.params) == 1


class TestDispatch:
    async def test_console_line(self, registry: CommandRegistry) -> None:
        func = MagicMock()
        registry.register("sh_say", None, func).add_param("string", take_rest_of_line=True)
        assert await registry.dispatch(None, "sh_say hello there  ") is True
        func.assert_called_once_with(None, "hello there")

    async def test_unknown_console_command(self, registry: CommandRegistry) -> None:
        assert await registry.dispatch(None, "sh_nothing") is False

    async def test_async_handler(self, registry: CommandRegistry) -> None:
        calls = []

        async def handler(caller, value):
            calls.append(value)

        registry.register("sh_async", None, handler).add_param("number")
        await registry.dispatch(None, "sh_async 4")
        assert calls == [4.0]

    async def test_access_denied(self, registry: CommandRegistry, game, out) -> None:
        func = MagicMock()
        registry.register("sh_kick", "kick", func)
        bob = game.clients()[1]
        await registry.dispatch(bob, "sh_kick")
        func.assert_not_called()
        assert out == [(bob, "You do not have access to sh_kick.")]

    async def test_admin_and_default_access(self, registry: CommandRegistry, game) -> None:
        alice, bob, _ = game.clients()
        registry.register("sh_kick", None, MagicMock())
        registry.register("sh_help", None, MagicMock(), allow_by_default=True)
        assert registry.has_access(None, "sh_kick")
        assert registry.has_access(alice, "sh_kick")
        assert not registry.has_access(bob, "sh_kick")
        assert registry.has_access(bob, "sh_help")
        assert not registry.has_access(bob, "sh_missing")

    async def test_chat_alias(self, registry: CommandRegistry, game) -> None:
        func = MagicMock()
        registry.register("sh_say", ["say"], func, silent=True).add_param(
            "string", take_rest_of_line=True
        )
        alice = game.clients()[0]
        assert await registry.dispatch_chat(alice, "!SAY hi all") is True
        func.assert_called_once_with(alice, "hi all")

    async def test_chat_without_prefix_or_alias(self, registry: CommandRegistry) -> None:
        registry.register("sh_say", ["say"], MagicMock())
        assert await registry.dispatch_chat(None, "say hi") is False
        assert await registry.dispatch_chat(None, "!unknown") is False

    async def test_handler_error_is_reported(self, registry: CommandRegistry, out, caplog) -> None:
        registry.register("sh_boom", None, MagicMock(side_effect=RuntimeError("boom")))
        with caplog.at_level(logging.ERROR):
            assert await registry.dispatch(None, "sh_boom") is True
        assert out == [(None, "Command sh_boom failed: boom")]

    async def test_command_error_is_reported(self, registry: CommandRegistry, out) -> None:
        registry.register("sh_x", None, MagicMock(side_effect=CommandError("nope")))
        await registry.dispatch(None, "sh_x")
        assert out == [(None, "nope")]


class TestParseArgs:
    def _parse(self, registry: CommandRegistry, rest: str, caller=None, **options):
        command = registry.register("sh_t", None, MagicMock())
        for type_, opts in options.get("params", []):
            command.add_param(type_, **opts)
        return registry.parse_args(caller, command, rest)

    def test_missing_required(self, registry: CommandRegistry) -> None:
        with pytest.raises(CommandError, match="Please specify a map"):
            self._parse(registry, "", params=[("string", {"error": "Please specify a map."})])

    def test_optional_defaults(self, registry: CommandRegistry) -> None:
        values = self._parse(
            registry,
            "",
            params=[
                ("string", {"optional": True, "default": ""}),
                ("boolean", {"optional": True, "default": lambda: True}),
            ],
        )
        assert values == ["", True]

    def test_number_clamp_and_round(self, registry: CommandRegistry) -> None:
        params = [("number", {"round": True, "min": 0, "max": 1800})]
        assert self._parse(registry, "12.6", params=params) == [13]
        assert self._parse(registry, "5000", params=params) == [1800]
        assert self._parse(registry, "-3", params=params) == [0]
        with pytest.raises(CommandError):
            self._parse(registry, "soon", params=params)

    def test_boolean(self, registry: CommandRegistry) -> None:
        params = [("boolean", {})]
        assert self._parse(registry, "on", params=params) == [True]
        assert self._parse(registry, "0", params=params) == [False]
        with pytest.raises(CommandError):
            self._parse(registry, "maybe", params=params)

    def test_string_max_length(self, registry: CommandRegistry) -> None:
        params = [("string", {"take_rest_of_line": True, "max_length": 5})]
        assert self._parse(registry, "hello world", params=params) == ["hello"]

    def test_team(self, registry: CommandRegistry) -> None:
        params = [("team", {})]
        assert self._parse(registry, "aliens", params=params) == [Team.ALIENS]
        assert self._parse(registry, "1", params=params) == [Team.MARINES]
        with pytest.raises(CommandError):
            self._parse(registry, "pirates", params=params)

    def test_client(self, registry: CommandRegistry, game) -> None:
        alice, bob, bobby = game.clients()
        params = [("client", {})]
        assert self._parse(registry, "bob", params=params) == [bob]
        assert self._parse(registry, "300", params=params) == [bobby]
        assert self._parse(registry, "ali", params=params) == [alice]
        with pytest.raises(CommandError):
            self._parse(registry, "zed", params=params)

    def test_client_not_self(self, registry: CommandRegistry, game) -> None:
        alice = game.clients()[0]
        with pytest.raises(CommandError, match="yourself"):
            self._parse(registry, "alice", caller=alice, params=[("client", {"not_self": True})])

    def test_clients(self, registry: CommandRegistry, game) -> None:
        alice, bob, bobby = game.clients()
        params = [("clients", {})]
        assert self._parse(registry, "*", params=params) == [[alice, bob, bobby]]
        assert self._parse(registry, "alice,bob", params=params) == [[alice, bob]]
        assert self._parse(registry, "bo", params=params) == [[bob, bobby]]
        with pytest.raises(CommandError):
            self._parse(registry, "zed", params=params)
