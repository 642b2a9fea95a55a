"""Base commands: admin console/chat commands and the hooks that back gag and all talk."""

import time
from typing import Any

from modhost.commands import CommandError
from modhost.extensions import ExtensionError
from modhost.game import Client, GameState, team_name

MAX_CHAT_LENGTH = 120
PROTECTED = "basecommands"


class BaseCommandsServer:
    """Server behavior layered over the shared BaseCommandsPlugin."""

    version = "1.1"

    has_config = True
    config_name = "BaseCommands.json"
    default_config: dict[str, Any] = {
        "AllTalk": False,
        "AllTalkPreGame": False,
        "EjectVotesNeeded": 0.5,
    }
    check_config = True

    async def initialise(self) -> bool:
        # client -> True (rest of map) or monotonic expiry time
        self.gagged: dict[Client, bool | float] = {}
        votes = float(self.config.get("EjectVotesNeeded", 0.5))
        self.config["EjectVotesNeeded"] = min(max(votes, 0.0), 1.0)
        self.create_commands()
        return True

    def _print(self, caller: Client | None, message: str) -> None:
        self.context.admin_print(caller, message)

    def _game(self):
        if self.context.game is None:
            raise CommandError("No game server is attached.")
        return self.context.game

    # Hooks

    def on_think(self, delta: float) -> None:
        self.dt.all_talk = bool(self.config["AllTalkPreGame"])

    def on_set_game_state(self, new_state: int, old_state: int) -> None:
        self.dt.gamestate = int(new_state)

    def on_can_player_hear_player(self, listener: Client, speaker: Client) -> bool | None:
        game = self.context.game
        if (
            self.config["AllTalkPreGame"]
            and game is not None
            and game.game_state() == GameState.NOT_STARTED
        ):
            return True
        if self.config["AllTalk"]:
            return True
        return None

    def on_player_say(self, client: Client, message: str) -> str | None:
        gag = self.gagged.get(client)
        if gag is None:
            return None
        if gag is True or gag > time.monotonic():
            return ""
        del self.gagged[client]
        return None

    # Commands

    def create_commands(self) -> None:
        commands = self.context.commands
        manager = self.context.manager

        def help_(caller, name):
            command = commands.get(name)
            if command is None:
                self._print(caller, f"{name} is not a valid command.")
                return
            if not commands.has_access(caller, name):
                self._print(caller, f"You do not have access to {name}.")
                return
            self._print(caller, f"{name}: {command.help_text or 'No help available.'}")

        self.bind_command("sh_help", None, help_, allow_by_default=True).add_param(
            "string", take_rest_of_line=True, error="Please specify a command."
        ).help("<command> Displays usage information for the given command.")

        def help_list(caller):
            self._print(caller, "Available commands:")
            for name in commands.names():
                if commands.has_access(caller, name):
                    command = commands.get(name)
                    self._print(caller, f"{name}: {command.help_text or 'No help available.'}")
            self._print(caller, "End command list.")

        self.bind_command("sh_helplist", None, help_list, allow_by_default=True).help(
            "Displays every command you have access to and their usage."
        )

        async def load_plugin(caller, name):
            name = name.lower()
            if name == PROTECTED:
                self._print(caller, "You cannot reload the basecommands plugin.")
                return
            try:
                if name in manager.registry:
                    await manager.enable(name)
                else:
                    await manager.load(name)
            except ExtensionError as e:
                self._print(caller, f"Plugin {name} failed to load. Error: {e.message}")
                return
            if manager.registry.is_enabled(name):
                self._print(caller, f"Plugin {name} loaded successfully.")
            else:
                self._print(caller, f"Plugin {name} loaded but is not enabled.")

        self.bind_command("sh_loadplugin", None, load_plugin).add_param(
            "string", take_rest_of_line=True, error="Please specify a plugin to load."
        ).help("<plugin> Loads a plugin.")

        async def unload_plugin(caller, name):
            name = name.lower()
            if name == PROTECTED and manager.registry.is_enabled(name):
                self._print(
                    caller,
                    "Unloading the basecommands plugin is ill-advised. If you wish to do so, "
                    "remove it from the active plugins list in your config.",
                )
                return
            if not manager.registry.is_enabled(name):
                self._print(caller, f"The plugin {name} is not loaded.")
                return
            await manager.disable(name)
            self._print(caller, f"The plugin {name} unloaded successfully.")

        self.bind_command("sh_unloadplugin", None, unload_plugin).add_param(
            "string", take_rest_of_line=True, error="Please specify a plugin to unload."
        ).help("<plugin> Unloads a plugin.")

        def list_plugins(caller):
            self._print(caller, "Loaded plugins:")
            for name, plugin in manager.registry.list_enabled():
                self._print(caller, f"{name} - version: {getattr(plugin, 'version', '1.0')}")

        self.bind_command("sh_listplugins", None, list_plugins).help("Lists all loaded plugins.")

        def status(caller):
            clients = sorted(self._game().clients(), key=lambda c: c.game_id)
            count = "1 connected player" if len(clients) == 1 else f"{len(clients)} connected players"
            show_ips = caller is None or commands.has_access(caller, "sh_kick")
            self._print(caller, f"Showing {count}:")
            for client in clients:
                line = f"'{client.game_id}'\t'{client.name}'\t'{client.user_id}'\t'{team_name(client.team)}'"
                if show_ips:
                    line += f"\t{client.address}"
                self._print(caller, line)

        self.bind_command("sh_status", None, status, allow_by_default=True).help(
            "Prints a list of all connected players and their relevant information."
        )

        def kick(caller, target, reason):
            self._game().kick(target, reason)
            by = caller.name if caller else "Console"
            self._print(None, f"{by} kicked {target.name}.{' Reason: ' + reason if reason else ''}")

        self.bind_command("sh_kick", "kick", kick).add_param("client", not_self=True).add_param(
            "string", optional=True, take_rest_of_line=True, default=""
        ).help("<player> Kicks the given player.")

        def change_level(caller, map_name):
            self._game().change_map(map_name)

        self.bind_command("sh_changelevel", "map", change_level).add_param(
            "string", take_rest_of_line=True, error="Please specify a map to change to."
        ).help("<map> Changes the map to the given level immediately.")

        def list_maps(caller):
            self._print(caller, "Installed maps:")
            for map_name in self._game().list_maps():
                self._print(caller, f"- {map_name}")

        self.bind_command("sh_listmaps", None, list_maps).help(
            "Lists all installed maps on the server."
        )

        def reset_game(caller):
            self._game().reset_game()

        self.bind_command("sh_reset", "reset", reset_game).help("Resets the game round.")

        def ready_room(caller, targets):
            game = self._game()
            for target in targets:
                game.join_team(target, 0)

        self.bind_command("sh_rr", "rr", ready_room).add_param("clients").help(
            "<players> Sends the given player(s) to the ready room."
        )

        def set_team(caller, targets, team):
            game = self._game()
            for target in targets:
                game.join_team(target, team)

        self.bind_command("sh_setteam", ["team", "setteam"], set_team).add_param(
            "clients"
        ).add_param("team", error="Please specify either marines or aliens.").help(
            "<players> <marine/alien> Sets the given player(s) onto the given team."
        )

        def all_talk(caller, enable):
            self.config["AllTalk"] = enable
            self.save_config()
            state = "enabled" if enable else "disabled"
            self._game().notify(None, "[All Talk]", f"All talk has been {state}.")

        self.bind_command("sh_alltalk", "alltalk", all_talk).add_param(
            "boolean", optional=True, default=lambda: not self.config["AllTalk"]
        ).help(
            "<true/false> Enable or disable all talk, which allows everyone to hear "
            "each others voice chat regardless of team."
        )

        def set_password(caller, password):
            self._game().set_password(password)
            self._print(caller, f"Password {'set to ' + password if password else 'reset'}")

        self.bind_command("sh_password", "password", set_password).add_param(
            "string", take_rest_of_line=True, optional=True, default=""
        ).help("<password> Sets the server password.")

        def admin_say(caller, message):
            self._game().notify(None, "All", message)

        self.bind_command("sh_say", "say", admin_say, silent=True).add_param(
            "string",
            take_rest_of_line=True,
            max_length=MAX_CHAT_LENGTH,
            error="Please specify a message.",
        ).help("<message> Sends a message to everyone from 'Admin'.")

        def admin_team_say(caller, team, message):
            game = self._game()
            players = [c for c in game.clients() if c.team == team]
            game.notify(players, "Team", message)

        self.bind_command("sh_teamsay", "teamsay", admin_team_say, silent=True).add_param(
            "team", error="Please specify either marines or aliens."
        ).add_param(
            "string",
            take_rest_of_line=True,
            max_length=MAX_CHAT_LENGTH,
            error="Please specify a message.",
        ).help("<marine/alien> <message> Sends a messages to everyone on the given team from 'Admin'.")

        def private_message(caller, target, message):
            self._game().notify([target], "PM", message)

        self.bind_command("sh_pm", "pm", private_message).add_param("client").add_param(
            "string",
            take_rest_of_line=True,
            max_length=MAX_CHAT_LENGTH,
            error="Please specify a message to send.",
        ).help("<player> <message> Sends a private message to the given player.")

        def gag(caller, target, duration):
            self.gagged[target] = True if duration == 0 else time.monotonic() + duration
            by = caller.name if caller else "Console"
            until = "" if duration == 0 else f" for {duration} seconds"
            self._print(None, f"{by} gagged {target.name}{until}")

        self.bind_command("sh_gag", "gag", gag).add_param("client").add_param(
            "number", round=True, min=0, max=1800, optional=True, default=0
        ).help(
            "<player> <duration> Silences the given player's chat. "
            "If no duration is given, it will hold for the remainder of the map."
        )

        def ungag(caller, target):
            if target not in self.gagged:
                self._print(caller, f"{target.name} is not gagged.")
                return
            del self.gagged[target]
            by = caller.name if caller else "Console"
            self._print(None, f"{by} ungagged {target.name}")

        self.bind_command("sh_ungag", "ungag", ungag).add_param("client").help(
            "<player> Stops silencing the given player's chat."
        )


def setup(builder) -> None:
    builder.extend(BaseCommandsServer)
