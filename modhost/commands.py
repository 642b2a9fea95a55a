"""Command registry: console and chat commands with typed parameters and a permission gate.

Extensions bind commands through Plugin.bind_command(); the default Plugin.cleanup()
removes them again, so an extension's commands exist exactly while it is enabled.
"""

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from modhost.game import Client, GameServer, match_clients, parse_team

logger = logging.getLogger(__name__)

PARAM_TYPES = frozenset({"string", "number", "boolean", "client", "clients", "team"})
_TRUE = frozenset({"1", "true", "yes", "on", "y"})
_FALSE = frozenset({"0", "false", "no", "off", "n"})

Printer = Callable[[Client | None, str], None]


class CommandError(Exception):
    """Bad arguments or missing access; the message goes back to the caller."""


@dataclass
class Param:
    type: str
    optional: bool = False
    default: Any = None  # value or zero-argument callable
    take_rest_of_line: bool = False
    min: float | None = None
    max: float | None = None
    round: bool = False
    max_length: int | None = None
    error: str | None = None
    not_self: bool = False

    def default_value(self) -> Any:
        return self.default() if callable(self.default) else self.default


@dataclass(eq=False)
class Command:
    con_cmd: str
    chat_cmds: list[str]
    func: Callable[..., Any]
    allow_by_default: bool = False
    silent: bool = False
    params: list[Param] = field(default_factory=list)
    help_text: str = ""

    def add_param(self, type_: str, **options: Any) -> "Command":
        if type_ not in PARAM_TYPES:
            raise ValueError(f"Unknown parameter type {type_!r}")
        self.params.append(Param(type=type_, **options))
        return self

    def help(self, text: str) -> "Command":
        self.help_text = text
        return self


@runtime_checkable
class Permissions(Protocol):
    def has_access(self, client: Client | None, command: str) -> bool: ...


class AdminListPermissions:
    """Console and listed admin user ids may run everything."""

    def __init__(self, admins: Iterable[int] = ()) -> None:
        self._admins = set(admins)

    def has_access(self, client: Client | None, command: str) -> bool:
        return client is None or client.user_id in self._admins


def _default_printer(client: Client | None, message: str) -> None:
    if client is None:
        print(message, flush=True)
    else:
        logger.info("-> %s: %s", client.name, message)


class CommandRegistry:
    """Holds bound commands and dispatches console lines and chat messages."""

    def __init__(
        self,
        permissions: Permissions | None = None,
        game: GameServer | None = None,
        printer: Printer | None = None,
    ) -> None:
        self._commands: dict[str, Command] = {}
        self._chat: dict[str, Command] = {}
        self._permissions = permissions or AdminListPermissions()
        self._game = game
        self._printer = printer or _default_printer

    def register(
        self,
        con_cmd: str,
        chat_cmds: str | list[str] | None,
        func: Callable[..., Any],
        allow_by_default: bool = False,
        silent: bool = False,
    ) -> Command:
        if isinstance(chat_cmds, str):
            chat_cmds = [chat_cmds]
        if con_cmd in self._commands:
            logger.warning("Command %s is already bound; replacing it", con_cmd)
            self.remove(con_cmd)
        command = Command(
            con_cmd=con_cmd,
            chat_cmds=list(chat_cmds or []),
            func=func,
            allow_by_default=allow_by_default,
            silent=silent,
        )
        self._commands[con_cmd] = command
        for alias in command.chat_cmds:
            self._chat[alias.lower()] = command
        return command

    def remove(self, con_cmd: str) -> None:
        command = self._commands.pop(con_cmd, None)
        if command is None:
            return
        for alias in command.chat_cmds:
            if self._chat.get(alias.lower()) is command:
                del self._chat[alias.lower()]

    def get(self, con_cmd: str) -> Command | None:
        return self._commands.get(con_cmd)

    def __contains__(self, con_cmd: object) -> bool:
        return con_cmd in self._commands

    def names(self) -> list[str]:
        return sorted(self._commands)

    def has_access(self, client: Client | None, con_cmd: str) -> bool:
        command = self._commands.get(con_cmd)
        if command is None:
            return False
        return command.allow_by_default or self._permissions.has_access(client, con_cmd)

    def admin_print(self, client: Client | None, message: str) -> None:
        self._printer(client, message)

    async def dispatch(self, caller: Client | None, line: str) -> bool:
        """Run a console line. Returns False if no such command exists."""
        name, _, rest = line.strip().partition(" ")
        command = self._commands.get(name)
        if command is None:
            return False
        await self._run(caller, command, rest)
        return True

    async def dispatch_chat(self, caller: Client | None, message: str) -> bool:
        """Run '!alias args'. Returns True when the chat line should be hidden."""
        text = message.strip()
        if not text.startswith(("!", "/")):
            return False
        alias, _, rest = text[1:].partition(" ")
        command = self._chat.get(alias.lower())
        if command is None:
            return False
        await self._run(caller, command, rest)
        return command.silent

    async def _run(self, caller: Client | None, command: Command, rest: str) -> None:
        if not self.has_access(caller, command.con_cmd):
            self.admin_print(caller, f"You do not have access to {command.con_cmd}.")
            return
        try:
            args = self.parse_args(caller, command, rest)
            result = command.func(caller, *args)
            if inspect.isawaitable(result):
                await result
        except CommandError as e:
            self.admin_print(caller, str(e))
        except Exception as e:
            logger.exception("Command %s failed: %s", command.con_cmd, e)
            self.admin_print(caller, f"Command {command.con_cmd} failed: {e}")

    def parse_args(self, caller: Client | None, command: Command, rest: str) -> list[Any]:
        values: list[Any] = []
        for index, param in enumerate(command.params, start=1):
            if param.take_rest_of_line:
                raw, rest = rest.strip(), ""
            else:
                parts = rest.strip().split(None, 1)
                raw = parts[0] if parts else ""
                rest = parts[1] if len(parts) > 1 else ""
            if not raw:
                if param.optional:
                    values.append(param.default_value())
                    continue
                raise CommandError(param.error or f"Missing argument #{index} for {command.con_cmd}.")
            values.append(self._convert(caller, param, raw))
        return values

    def _convert(self, caller: Client | None, param: Param, raw: str) -> Any:
        if param.type == "string":
            if param.max_length is not None:
                return raw[: param.max_length]
            return raw
        if param.type == "number":
            try:
                number = float(raw)
            except ValueError:
                raise CommandError(param.error or f"'{raw}' is not a number.") from None
            if param.round:
                number = round(number)
            if param.min is not None:
                number = max(param.min, number)
            if param.max is not None:
                number = min(param.max, number)
            return int(number) if param.round else number
        if param.type == "boolean":
            lowered = raw.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise CommandError(param.error or f"'{raw}' is not true or false.")
        if param.type == "team":
            team = parse_team(raw)
            if team is None:
                raise CommandError(param.error or f"'{raw}' is not a valid team.")
            return team
        clients = self._game.clients() if self._game else []
        if param.type == "client":
            matches = match_clients(clients, raw)
            if not matches:
                raise CommandError(param.error or f"No player matches '{raw}'.")
            if param.not_self and matches[0] is caller:
                raise CommandError("You cannot target yourself.")
            return matches[0]
        # clients
        if raw == "*":
            targets = list(clients)
        else:
            targets = []
            for query in raw.split(","):
                for client in match_clients(clients, query):
                    if client not in targets:
                        targets.append(client)
        if not targets:
            raise CommandError(param.error or f"No players match '{raw}'.")
        return targets
