"""Process-wide hooks: kernel subscribers first, then enabled plugins.

A plugin handles hook ``x`` by defining ``on_x``. The first handler returning a value
other than None ends the call and that value is returned.
"""

import inspect
import logging
from collections import defaultdict
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

PluginSource = Callable[[], Iterable[tuple[str, Any]]]


class Hooks:
    """Hook names raised by the kernel."""

    # Extension was disabled; args: (name,)
    PLUGIN_UNLOAD = "plugin_unload"

    # Peer finished connecting; args: (peer_id,)
    CLIENT_CONFIRM_CONNECT = "client_confirm_connect"

    # Peer went away; args: (peer_id,)
    CLIENT_DISCONNECT = "client_disconnect"

    # Client side: map loaded, extensions may auto-load; no args
    MAP_LOAD = "map_load"

    # Periodic tick; args: (delta_seconds,)
    THINK = "think"

    # Chat message; args: (client, message). Return a str to replace the message.
    PLAYER_SAY = "player_say"

    # Voice routing; args: (listener, speaker). Return a bool to override.
    CAN_PLAYER_HEAR_PLAYER = "can_player_hear_player"

    # Game state change; args: (new_state, old_state)
    SET_GAME_STATE = "set_game_state"


class HookBus:
    """Dispatch named hooks to subscribers and to enabled plugins."""

    def __init__(self, plugins: PluginSource | None = None) -> None:
        self._subscribers: dict[str, list[tuple[str, Callable[..., Any]]]] = defaultdict(list)
        self._plugins = plugins

    def set_plugin_source(self, plugins: PluginSource) -> None:
        """Callable returning (name, instance) for enabled plugins. Set by the manager."""
        self._plugins = plugins

    def subscribe(self, event: str, handler: Callable[..., Any], owner: str = "kernel") -> None:
        self._subscribers[event].append((owner, handler))

    def unsubscribe(self, event: str, handler: Callable[..., Any]) -> None:
        if event in self._subscribers:
            self._subscribers[event] = [
                (o, h) for o, h in self._subscribers[event] if h != handler
            ]

    async def call(self, event: str, *args: Any) -> Any:
        for owner, handler in list(self._subscribers.get(event, [])):
            result = await self._invoke(event, owner, handler, args)
            if result is not None:
                return result
        if self._plugins is None:
            return None
        method_name = f"on_{event}"
        for name, plugin in list(self._plugins()):
            method = getattr(plugin, method_name, None)
            if not callable(method):
                continue
            result = await self._invoke(event, name, method, args)
            if result is not None:
                return result
        return None

    async def _invoke(
        self, event: str, owner: str, handler: Callable[..., Any], args: tuple
    ) -> Any:
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            logger.exception("Hook handler error [%s/%s]: %s", event, owner, e)
            return None
