from __future__ import annotations

import argparse
from dataclasses import replace
import json
import logging
from pathlib import Path
import sys

from .clock import RealClock
from .config import AppConfig, default_settings_path, load_config, save_config
from .console import ConsoleSession, start_reader
from .errors import CollaboratorError, ValidationError
from .publish import GitPublisher
from .session import SessionManager, build_alerts
from .storage import SessionStore
from .timer import minutes_to_seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="intervallog",
        description="IntervalLog: fixed-interval work sessions with progress logs published to git",
    )
    parser.add_argument("--root", default=None, help="Directory holding project folders (default ./work_sessions)")
    parser.add_argument("--repo", default=None, help="git repository root (default: parent of --root)")
    parser.add_argument(
        "--config",
        default=str(default_settings_path()),
        help="Settings JSON file (default ~/.intervallog/settings.json)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("folders", help="List project folders")

    mkdir_parser = subparsers.add_parser("mkdir", help="Create a project folder")
    mkdir_parser.add_argument("name", help="Folder name; unsupported characters become '_'")

    start_parser = subparsers.add_parser("start", help="Start a work session")
    start_parser.add_argument("--title", required=True, help="What you are working on")
    start_parser.add_argument("--folder", required=True, help="Project folder for the session file")
    start_parser.add_argument("--description", default="", help="Goals for this session")
    _add_timer_options(start_parser)

    settings_parser = subparsers.add_parser("settings", help="Show the effective settings or store new ones")
    _add_timer_options(settings_parser)
    settings_parser.add_argument(
        "--save",
        action="store_true",
        help="Write the given options (and --root/--repo) to the settings file",
    )

    subparsers.add_parser("test-alert", help="Fire a test alert (sound, notification, banner)")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8765, help="Port")

    subparsers.add_parser("gui", help="Open the desktop window")

    return parser


def _add_timer_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--interval-minutes",
        type=float,
        default=None,
        help="Interval length in minutes (default 15)",
    )
    parser.add_argument(
        "--capture-seconds",
        type=float,
        default=None,
        help="Seconds to answer the log prompt before auto-save (default 50)",
    )
    parser.add_argument(
        "--tick-seconds",
        type=float,
        default=None,
        help="Countdown refresh interval in seconds (>0)",
    )
    parser.add_argument("--volume", type=float, default=None, help="Alert volume 0..1")
    parser.add_argument("--mute", action="store_true", help="Disable the alert sound")
    parser.add_argument("--no-notify", action="store_true", help="Disable system notifications")
    parser.add_argument("--no-push", action="store_true", help="Save and commit without pushing")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    config = _load_config(args)

    try:
        if args.command == "folders":
            return _handle_folders(config)
        if args.command == "mkdir":
            return _handle_mkdir(args, config)
        if args.command == "start":
            return _handle_start(args, config, parser)
        if args.command == "settings":
            return _handle_settings(args, config, parser)
        if args.command == "test-alert":
            return _handle_test_alert(config)
        if args.command == "serve":
            return _handle_serve(args, config)
        if args.command == "gui":
            return _handle_gui(config)
    except ValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except CollaboratorError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    parser.print_help()
    return 2


def _load_config(args: argparse.Namespace) -> AppConfig:
    return _apply_paths(args, load_config(Path(args.config)))


def _apply_paths(args: argparse.Namespace, config: AppConfig) -> AppConfig:
    updates: dict[str, object] = {}
    if args.root:
        updates["sessions_root"] = Path(args.root).expanduser()
    if args.repo:
        updates["repo_root"] = Path(args.repo).expanduser()
    return replace(config, **updates) if updates else config


def _timer_updates(args: argparse.Namespace, parser: argparse.ArgumentParser) -> dict[str, object]:
    if args.interval_minutes is not None and args.interval_minutes <= 0:
        parser.error("--interval-minutes must be greater than 0")
    if args.capture_seconds is not None and args.capture_seconds <= 0:
        parser.error("--capture-seconds must be greater than 0")
    if args.tick_seconds is not None and args.tick_seconds <= 0:
        parser.error("--tick-seconds must be greater than 0")
    if args.volume is not None and not 0 <= args.volume <= 1:
        parser.error("--volume must be between 0 and 1")

    updates: dict[str, object] = {}
    if args.interval_minutes is not None:
        updates["interval_seconds"] = float(minutes_to_seconds(args.interval_minutes))
    if args.capture_seconds is not None:
        updates["capture_seconds"] = float(args.capture_seconds)
    if args.tick_seconds is not None:
        updates["tick_seconds"] = float(args.tick_seconds)
    if args.volume is not None:
        updates["volume"] = float(args.volume)
    if args.mute:
        updates["muted"] = True
    if args.no_notify:
        updates["notify"] = False
    if args.no_push:
        updates["push"] = False
    return updates


def _handle_folders(config: AppConfig) -> int:
    folders = SessionStore(config.resolved_sessions_root()).list_folders()
    if not folders:
        print("No folders yet. Create one with: intervallog mkdir NAME")
        return 0
    for name in folders:
        print(name)
    return 0


def _handle_mkdir(args: argparse.Namespace, config: AppConfig) -> int:
    folder = SessionStore(config.resolved_sessions_root()).create_folder(args.name)
    print(f"Folder ready: {folder}")
    return 0


def _handle_start(args: argparse.Namespace, config: AppConfig, parser: argparse.ArgumentParser) -> int:
    updates = _timer_updates(args, parser)
    config = replace(config, **updates) if updates else config

    clock = RealClock()
    sessions_root = config.resolved_sessions_root()
    manager = SessionManager(
        SessionStore(sessions_root),
        clock,
        publisher=GitPublisher(config.resolved_repo_root(), sessions_root, push=config.push),
        config=config,
        alerts=build_alerts(config, clock),
    )
    console = ConsoleSession(manager, clock, config, start_reader())
    return console.run(args.title, args.folder, args.description)


def _handle_settings(args: argparse.Namespace, config: AppConfig, parser: argparse.ArgumentParser) -> int:
    updates = _timer_updates(args, parser)
    if args.save:
        # Environment overrides apply at load time only; never write them back.
        stored = _apply_paths(args, load_config(Path(args.config), environ={}))
        config = replace(stored, **updates) if updates else stored
        path = save_config(config, Path(args.config))
        print(f"Settings saved: {path}")
    elif updates:
        config = replace(config, **updates)
    print(json.dumps(config.to_dict(), indent=2, sort_keys=True))
    return 0


def _handle_test_alert(config: AppConfig) -> int:
    alerts = build_alerts(config, RealClock(), dispatch=lambda action: action())
    if alerts.sound is not None:
        alerts.sound.load()
    alerts.test()
    print("Test alert fired.")
    return 0


def _handle_serve(args: argparse.Namespace, config: AppConfig) -> int:
    try:
        import uvicorn
    except ImportError as exc:
        print(f"serve needs uvicorn: {exc}", file=sys.stderr)
        return 2

    from .api.app import create_default_app

    uvicorn.run(create_default_app(config), host=args.host, port=args.port, log_level="info")
    return 0


def _handle_gui(config: AppConfig) -> int:
    from .desktop.main import launch_desktop

    return launch_desktop(config)
