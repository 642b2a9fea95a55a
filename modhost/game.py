"""Game engine boundary: connected clients, teams and the actions admin commands perform.

The engine itself lives outside this project. HeadlessServer is an in-process stand-in
that records what happened; it backs the console runner and the tests.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class Team(IntEnum):
    READY_ROOM = 0
    MARINES = 1
    ALIENS = 2
    SPECTATOR = 3


class GameState(IntEnum):
    NOT_STARTED = 0
    PREGAME = 1
    COUNTDOWN = 2
    STARTED = 3
    TEAM1_WON = 4
    TEAM2_WON = 5
    DRAW = 6


_TEAM_ALIASES: dict[str, Team] = {
    "rr": Team.READY_ROOM,
    "readyroom": Team.READY_ROOM,
    "marine": Team.MARINES,
    "marines": Team.MARINES,
    "alien": Team.ALIENS,
    "aliens": Team.ALIENS,
    "spec": Team.SPECTATOR,
    "spectate": Team.SPECTATOR,
    "spectator": Team.SPECTATOR,
}


def parse_team(text: str) -> Team | None:
    """Team from a number or a name such as 'marines'; None if unknown."""
    value = text.strip().lower()
    if value.isdigit():
        try:
            return Team(int(value))
        except ValueError:
            return None
    return _TEAM_ALIASES.get(value)


def team_name(team: int) -> str:
    try:
        return Team(team).name.replace("_", " ").title()
    except ValueError:
        return f"Team {team}"


@dataclass(eq=False)
class Client:
    """A connected player. Identity-compared: two clients are never equal by value."""

    game_id: int
    user_id: int
    name: str
    team: int = Team.READY_ROOM
    address: str = "127.0.0.1"


def match_clients(clients: list[Client], query: str) -> list[Client]:
    """Resolve a command argument: game id, user id, exact name, then name substring."""
    query = query.strip()
    if not query:
        return []
    if query.isdigit():
        number = int(query)
        by_id = [c for c in clients if c.game_id == number or c.user_id == number]
        if by_id:
            return by_id
    lowered = query.lower()
    exact = [c for c in clients if c.name.lower() == lowered]
    if exact:
        return exact
    return [c for c in clients if lowered in c.name.lower()]


@runtime_checkable
class GameServer(Protocol):
    """Actions the framework and admin extensions need from the engine."""

    def clients(self) -> list[Client]: ...

    def kick(self, client: Client, reason: str = "") -> None: ...

    def notify(self, targets: list[Client] | None, prefix: str, message: str) -> None: ...

    def join_team(self, client: Client, team: int) -> None: ...

    def set_password(self, password: str) -> None: ...

    def change_map(self, map_name: str) -> None: ...

    def reset_game(self) -> None: ...

    def list_maps(self) -> list[str]: ...

    def game_state(self) -> int: ...


@dataclass
class HeadlessServer:
    """GameServer without an engine: keeps state in memory and logs every action."""

    maps: list[str] = field(default_factory=lambda: ["ns2_summit", "ns2_veil", "ns2_tram"])
    current_map: str = "ns2_summit"
    password: str = ""
    messages: list[tuple[str, str, list[int] | None]] = field(default_factory=list)
    _clients: dict[int, Client] = field(default_factory=dict)
    _next_id: int = 1
    resets: int = 0
    state: int = GameState.NOT_STARTED

    def add_client(self, name: str, user_id: int, team: int = Team.READY_ROOM) -> Client:
        client = Client(game_id=self._next_id, user_id=user_id, name=name, team=team)
        self._clients[client.game_id] = client
        self._next_id += 1
        return client

    def clients(self) -> list[Client]:
        return list(self._clients.values())

    def kick(self, client: Client, reason: str = "") -> None:
        self._clients.pop(client.game_id, None)
        logger.info("Kicked %s%s", client.name, f" ({reason})" if reason else "")

    def notify(self, targets: list[Client] | None, prefix: str, message: str) -> None:
        ids = None if targets is None else [c.game_id for c in targets]
        self.messages.append((prefix, message, ids))
        logger.info("[%s] %s", prefix, message)

    def join_team(self, client: Client, team: int) -> None:
        client.team = team
        logger.info("%s joined %s", client.name, team_name(team))

    def set_password(self, password: str) -> None:
        self.password = password

    def change_map(self, map_name: str) -> None:
        self.current_map = map_name
        logger.info("Changing map to %s", map_name)

    def reset_game(self) -> None:
        self.resets += 1
        self.state = GameState.NOT_STARTED

    def list_maps(self) -> list[str]:
        return list(self.maps)

    def game_state(self) -> int:
        return self.state

    def set_game_state(self, state: int) -> int:
        """Switch state and return the previous one; the caller raises set_game_state."""
        old, self.state = self.state, state
        return old
