"""Entry point for the modhost process: build the app context, then serve or mirror a server."""

import asyncio
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from modhost.commands import AdminListPermissions, CommandRegistry, Printer
from modhost.extensions import (
    AutoLoadList,
    ConfigStore,
    Environment,
    ExtensionManager,
    ExtensionRegistry,
    FileCatalog,
)
from modhost.game import GameServer, HeadlessServer
from modhost.hooks import HookBus, Hooks
from modhost.logging_config import setup_logging
from modhost.net import (
    LocalTransport,
    StreamClient,
    StreamServer,
    SyncBroadcaster,
    SyncReceiver,
)
from modhost.settings import get_setting, load_settings, network_settings

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _resolve(path: str, root: Path = _PROJECT_ROOT) -> Path:
    p = Path(path)
    return p if p.is_absolute() else root / p


@dataclass
class App:
    """Process-wide collaborators, passed by reference instead of living in globals."""

    settings: dict[str, Any]
    root: Path
    environment: Environment
    catalog: FileCatalog
    registry: ExtensionRegistry
    config_store: ConfigStore
    hooks: HookBus
    commands: CommandRegistry
    game: GameServer
    manager: ExtensionManager


def build_app(
    settings: dict[str, Any],
    root: Path = _PROJECT_ROOT,
    game: GameServer | None = None,
    printer: Printer | None = None,
) -> App:
    """Scan the catalog (once) and wire registry, config store, hooks and commands."""
    environment = Environment(str(settings.get("role", "server")).lower())
    roots = [
        _resolve(p, root)
        for p in get_setting(settings, "paths.extensions_dirs", ["sandbox/extensions"])
    ]
    catalog = FileCatalog.scan(roots)
    config_key = (
        "paths.config_dir" if environment is Environment.SERVER else "paths.client_config_dir"
    )
    config_store = ConfigStore(_resolve(get_setting(settings, config_key), root))
    game = game or HeadlessServer()
    hooks = HookBus()
    commands = CommandRegistry(
        permissions=AdminListPermissions(get_setting(settings, "permissions.admins", [])),
        game=game,
        printer=printer,
    )
    registry = ExtensionRegistry()
    manager = ExtensionManager(
        catalog=catalog,
        config_store=config_store,
        commands=commands,
        hooks=hooks,
        environment=environment,
        registry=registry,
        game=game,
    )
    return App(
        settings=settings,
        root=root,
        environment=environment,
        catalog=catalog,
        registry=registry,
        config_store=config_store,
        hooks=hooks,
        commands=commands,
        game=game,
        manager=manager,
    )


async def _tick_loop(hooks: HookBus, interval: float) -> None:
    """Fire the think hook every interval seconds."""
    last = time.monotonic()
    while True:
        await asyncio.sleep(interval)
        now = time.monotonic()
        await hooks.call(Hooks.THINK, now - last)
        last = now


async def _console_loop(commands: CommandRegistry, shutdown_event: asyncio.Event) -> None:
    """Read console lines on a worker thread; run them on the loop."""
    while not shutdown_event.is_set():
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            shutdown_event.set()
            break
        line = line.strip()
        if not line:
            continue
        if line in ("quit", "exit"):
            shutdown_event.set()
            break
        if not await commands.dispatch(None, line):
            commands.admin_print(None, f"Unknown command: {line.split()[0]}")


async def _cancel(tasks: list[asyncio.Task[Any]]) -> None:
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass


def attach_sync_server(app: App, transport: StreamServer | LocalTransport) -> SyncBroadcaster:
    """Full sync on client_confirm_connect; deltas go through the manager."""
    sync = SyncBroadcaster(transport, app.registry, app.catalog.shared_extensions())
    app.manager.set_sync_broadcaster(sync)
    app.hooks.subscribe(Hooks.CLIENT_CONFIRM_CONNECT, sync.send_full_sync, "kernel.sync")

    async def on_connect(peer_id: str) -> None:
        await app.hooks.call(Hooks.CLIENT_CONFIRM_CONNECT, peer_id)

    async def on_disconnect(peer_id: str) -> None:
        await app.hooks.call(Hooks.CLIENT_DISCONNECT, peer_id)

    transport.set_connect_handler(on_connect)
    transport.set_disconnect_handler(on_disconnect)
    return sync


async def run_server(app: App, shutdown_event: asyncio.Event, console: bool = True) -> None:
    network = network_settings(app.settings)
    transport = StreamServer(host=network.host, port=network.port)
    attach_sync_server(app, transport)
    await app.manager.preload()
    failures = await app.manager.enable_active(
        get_setting(app.settings, "extensions.active", {}) or {}
    )
    for name, error in failures.items():
        app.commands.admin_print(None, f"Plugin {name} failed to load. Error: {error}")
    await transport.start()

    tasks = [
        asyncio.create_task(
            _tick_loop(app.hooks, float(get_setting(app.settings, "tick_interval", 1.0)))
        )
    ]
    if console:
        tasks.append(asyncio.create_task(_console_loop(app.commands, shutdown_event)))
    try:
        await shutdown_event.wait()
    finally:
        await _cancel(tasks)
        await app.manager.shutdown()
        await transport.stop()


def _bind_client_commands(app: App, autoload: AutoLoadList) -> None:
    def set_autoload(caller: Any, name: str, enable: bool) -> None:
        if autoload.set(name, enable):
            state = "will" if enable else "will no longer"
            app.commands.admin_print(caller, f"{name} {state} load automatically.")
        else:
            app.commands.admin_print(caller, "Could not update the auto-load list.")

    command = app.commands.register("sh_autoload", None, set_autoload, allow_by_default=True)
    command.add_param("string", error="Please specify a plugin.")
    command.add_param("boolean", optional=True, default=True)
    command.help("<plugin> <true/false> Sets whether a client plugin loads on every map.")


async def _mirror_server(app: App, receiver: SyncReceiver) -> None:
    network = network_settings(app.settings)
    while True:
        client = StreamClient(network.host, network.port, receiver.handle)
        try:
            await client.connect()
            await client.run()
        except OSError as e:
            logger.warning(
                "Sync connection to %s:%d failed: %s", network.host, network.port, e
            )
        finally:
            await client.close()
        await asyncio.sleep(network.reconnect_delay)


async def run_client(app: App, shutdown_event: asyncio.Event, console: bool = True) -> None:
    receiver = SyncReceiver(app.manager)
    autoload_file = get_setting(app.settings, "paths.autoload_file", "sandbox/config/autoload.json")
    autoload = AutoLoadList(_resolve(autoload_file, app.root))

    async def on_map_load() -> None:
        await autoload.apply(app.manager)

    app.hooks.subscribe(Hooks.MAP_LOAD, on_map_load, "kernel.autoload")
    _bind_client_commands(app, autoload)
    await app.manager.preload()
    await app.hooks.call(Hooks.MAP_LOAD)

    tasks = [
        asyncio.create_task(_mirror_server(app, receiver)),
        asyncio.create_task(
            _tick_loop(app.hooks, float(get_setting(app.settings, "tick_interval", 1.0)))
        ),
    ]
    if console:
        tasks.append(asyncio.create_task(_console_loop(app.commands, shutdown_event)))
    try:
        await shutdown_event.wait()
    finally:
        await _cancel(tasks)
        await app.manager.shutdown()


async def main_async() -> None:
    """Bootstrap: settings -> logging -> catalog -> preload -> serve or mirror."""
    settings = load_settings()
    setup_logging(_PROJECT_ROOT, settings)
    app = build_app(settings)
    logger.info("Starting modhost as %s", app.environment.value)
    shutdown_event = asyncio.Event()
    try:
        if app.environment is Environment.SERVER:
            await run_server(app, shutdown_event)
        else:
            await run_client(app, shutdown_event)
    except asyncio.CancelledError:
        pass


def main() -> None:
    """Synchronous entry for the modhost process."""
    load_dotenv(_PROJECT_ROOT / ".env")
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        pass


__all__ = ["App", "build_app", "main", "run_client", "run_server"]
