"""Command-line front doors for heats.

``heats`` is the dmenu-style client: it reads items on stdin, asks the daemon
for a selection and prints it. ``heatsd`` runs the daemon itself: config,
logging, the IPC endpoint, cache warming and the dispatcher loop.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path

from .config import Config, load_config
from .errors import IpcEndpointInUse
from .ipc import (
    IpcServer,
    read_stdin_items,
    remove_pid,
    send_and_receive,
    send_hotkey,
    socket_path,
    write_pid,
)
from .providers import ProviderRunner
from .runtime import (
    Dispatcher,
    HotkeyPressed,
    HotkeyRouter,
    IpcClientGone,
    IpcSessionRequested,
    LoggingWindow,
    VisibilityStateMachine,
    WindowCapability,
    pump_hotkeys,
)

logger = logging.getLogger(__name__)

EXIT_SELECTED = 0
EXIT_CANCELLED = 1
EXIT_ERROR = 2

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool, log_file: str | None = None) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        filename=log_file,
    )


def main(argv: list[str] | None = None) -> None:
    """Run the dmenu client.

    Exits 0 after printing a selection, 1 when the user cancelled and 2 when
    the daemon is unreachable or there was nothing to choose from.
    """
    parser = argparse.ArgumentParser(
        prog="heats",
        description="Pick one line from stdin using the heats launcher.",
    )
    parser.add_argument("--format", choices=("text", "jsonl"), default="text", help="Input item format.")
    parser.add_argument("--socket", default=None, help="IPC socket path (default: per-user runtime dir).")
    parser.add_argument("--hotkey", metavar="BINDING", help="Toggle the mode bound to BINDING and exit.")
    args = parser.parse_args(argv)
    path = Path(args.socket) if args.socket else None

    if args.hotkey is not None:
        try:
            accepted = send_hotkey(args.hotkey, path)
        except ConnectionError as exc:
            print(f"heats: {exc}", file=sys.stderr)
            raise SystemExit(EXIT_ERROR) from exc
        if not accepted:
            raise SystemExit(EXIT_ERROR)
        return

    items = read_stdin_items(sys.stdin)
    if not items:
        print("heats: no items on stdin", file=sys.stderr)
        raise SystemExit(EXIT_ERROR)

    try:
        selection = send_and_receive(items, args.format, path)
    except (ConnectionError, OSError) as exc:
        print(f"heats: {exc}", file=sys.stderr)
        raise SystemExit(EXIT_ERROR) from exc
    if selection is None:
        raise SystemExit(EXIT_CANCELLED)
    print(selection)


@dataclass(frozen=True)
class Daemon:
    dispatcher: Dispatcher
    server: IpcServer
    runner: ProviderRunner
    router: HotkeyRouter

    def post_mode(self, mode: str) -> None:
        self.dispatcher.post(HotkeyPressed(mode))

    def on_hotkey(self, binding: str) -> None:
        mode = self.router.resolve(binding)
        if mode is None:
            logger.warning("No mode bound to hotkey %r", binding)
            return
        self.post_mode(mode)


def build_daemon(config: Config, endpoint: Path, window: WindowCapability) -> Daemon:
    """Wire runner, visibility, dispatcher and IPC server around ``config``."""
    runner = ProviderRunner()
    dispatcher = Dispatcher(config, runner, VisibilityStateMachine(window, config.window))
    router = HotkeyRouter(config.modes)
    server = IpcServer(
        endpoint,
        on_session=lambda session: dispatcher.post(IpcSessionRequested(session)),
        on_hotkey=lambda binding: daemon.on_hotkey(binding),
        on_client_gone=lambda session: dispatcher.post(IpcClientGone(session)),
    )
    daemon = Daemon(dispatcher=dispatcher, server=server, runner=runner, router=router)
    return daemon


def daemon_main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="heatsd", description="Run the heats launcher daemon.")
    parser.add_argument("--config", default=None, help="Config file (default: per-user config dir).")
    parser.add_argument("--socket", default=None, help="IPC socket path (default: per-user runtime dir).")
    parser.add_argument("--display", action="append", default=[], help="Display name known to the window (repeatable).")
    parser.add_argument(
        "--hotkeys-from-stdin",
        action="store_true",
        help="Read hotkey bindings, one per line, from stdin.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--log-file", default=None, help="Write logs to this file instead of stderr.")
    args = parser.parse_args(argv)

    configure_logging(args.verbose, args.log_file)
    config = load_config(Path(args.config) if args.config else None)
    endpoint = Path(args.socket) if args.socket else socket_path()
    daemon = build_daemon(config, endpoint, LoggingWindow(args.display or ("main",)))

    try:
        daemon.server.start()
    except IpcEndpointInUse as exc:
        logger.error("%s", exc)
        raise SystemExit(1) from exc

    write_pid()
    daemon.runner.start_background_refresh(list(config.providers.values()))
    if args.hotkeys_from_stdin:
        bindings = (line.strip() for line in sys.stdin if line.strip())
        pump_hotkeys(bindings, daemon.router, daemon.post_mode)

    def request_stop(signum: int, _frame: object) -> None:
        logger.info("Received signal %d, shutting down", signum)
        daemon.dispatcher.stop()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)
    logger.info("heatsd ready")
    try:
        daemon.dispatcher.run()
    finally:
        daemon.server.stop()
        daemon.runner.stop_background_refresh()
        remove_pid()


if __name__ == "__main__":
    main()
