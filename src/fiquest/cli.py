from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from . import __version__
from .app import FiquestApp
from .config import Settings
from .delivery import DirectoryHost
from .errors import FiquestError
from .logging_config import configure_logging
from .utils.jsonutil import pretty_dumps

logger = logging.getLogger(__name__)

ENCRYPTED_MARKER = "_encrypted"


def _number(text: str) -> float:
    value = float(text)
    return int(value) if value.is_integer() else value


def parse_account(text: str) -> Tuple[str, Dict[str, float]]:
    """``NAME=ACTUAL[:PROJECTED]``; projected defaults to actual."""
    name, sep, amounts = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=ACTUAL[:PROJECTED], got {text!r}")
    actual_text, _, projected_text = amounts.partition(":")
    try:
        actual = _number(actual_text)
        projected = _number(projected_text) if projected_text else actual
    except ValueError:
        raise argparse.ArgumentTypeError(f"amounts must be numbers, got {amounts!r}") from None
    return name.strip(), {"actual": actual, "projected": projected}


def _ask(prompt: str) -> bool:
    answer = input(f"{prompt}\n[y/N] ")
    return answer.strip().lower() in ("y", "yes")


def _scripted(answers: List[bool]) -> Callable[[str], bool]:
    it: Iterator[bool] = iter(answers)
    return lambda _prompt: next(it, False)


def _print_notices(app: FiquestApp) -> None:
    for notice in app.notices.drain():
        print(notice.text)


def _require_player(app: FiquestApp) -> bool:
    if app.session.require_login():
        return True
    print("error: no active player; run `fiquest login NAME` first", file=sys.stderr)
    return False


# --- Commands ---

def cmd_login(app: FiquestApp, args: argparse.Namespace) -> int:
    profile = app.session.login(args.name)
    print(f"Logged in as {profile.player_name}")
    return 0


def cmd_info(app: FiquestApp, args: argparse.Namespace) -> int:
    info = app.session.data_management_info()
    if info is None:
        print("No active player")
        return 1
    print(pretty_dumps(info))
    return 0


def cmd_export(app: FiquestApp, args: argparse.Namespace) -> int:
    if not _require_player(app):
        return 2
    result = app.export_to_file(args.format, obfuscate=args.encrypt)
    if isinstance(app.host, DirectoryHost) and app.host.last_path is not None and result.succeeded:
        print(f"Saved {app.host.last_path}")
    elif result.message:
        print(result.message)
    return 0 if result.succeeded else 1


def cmd_import(app: FiquestApp, args: argparse.Namespace) -> int:
    path = Path(args.file)
    encrypted = args.encrypted or ENCRYPTED_MARKER in path.stem
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        print(f"error: cannot read {path}: {exc}", file=sys.stderr)
        return 2
    result = app.import_text(text, is_obfuscated=encrypted)
    print(pretty_dumps(result.to_dict()))
    return 0 if result.success else 1


def cmd_networth_add(app: FiquestApp, args: argparse.Namespace) -> int:
    if not _require_player(app):
        return 2
    entry_data = {
        "accounts": {
            "assets": dict(args.asset or []),
            "liabilities": dict(args.liability or []),
        },
        "notes": args.notes or "",
    }
    if args.date:
        entry_data["date"] = args.date
    entry = app.session.ledger.add(entry_data)
    if entry is None:
        print("error: net worth entry rejected", file=sys.stderr)
        return 1
    print(pretty_dumps(entry.to_dict()))
    return 0


def cmd_networth_list(app: FiquestApp, args: argparse.Namespace) -> int:
    if not _require_player(app):
        return 2
    data = app.session.ledger.export(args.format)
    print(data if isinstance(data, str) else pretty_dumps(data))
    return 0


def cmd_backups(app: FiquestApp, args: argparse.Namespace) -> int:
    for key in app.transfer.list_backups():
        print(key)
    return 0


def cmd_restore(app: FiquestApp, args: argparse.Namespace) -> int:
    result = app.transfer.restore_backup(args.key)
    print(pretty_dumps(result.to_dict()))
    return 0 if result.success else 1


def cmd_logout(app: FiquestApp, args: argparse.Namespace) -> int:
    if args.yes:
        confirm = _scripted([True])
    elif args.no_save:
        confirm = _scripted([False, True])
    else:
        confirm = _ask
    result = app.logout(confirm)
    return 1 if result.status == "cancelled" else 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="fiquest", description="FIQuest player data: save files, import and net worth")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--config", type=Path, default=None, help="YAML settings file merged over the defaults")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd")

    login_p = sub.add_parser("login", help="Load or create a player")
    login_p.add_argument("name")
    login_p.set_defaults(func=cmd_login)

    info_p = sub.add_parser("info", help="Show stored data sizes and counts")
    info_p.set_defaults(func=cmd_info)

    export_p = sub.add_parser("export", help="Write a save file")
    export_p.add_argument("--format", choices=["json", "csv"], default="json")
    export_p.add_argument("--encrypt", action="store_true", help="Obfuscate the JSON save file")
    export_p.add_argument("--out", type=Path, default=None, help="Directory to write into")
    export_p.set_defaults(func=cmd_export)

    import_p = sub.add_parser("import", help="Load a save file, replacing the current player")
    import_p.add_argument("file")
    import_p.add_argument("--encrypted", action="store_true", help="File is obfuscated (default: guessed from name)")
    import_p.set_defaults(func=cmd_import)

    nw_p = sub.add_parser("networth", help="Net worth ledger")
    nw_sub = nw_p.add_subparsers(dest="nw_cmd")
    add_p = nw_sub.add_parser("add", help="Record a snapshot")
    add_p.add_argument("--date", default=None)
    add_p.add_argument("--asset", action="append", type=parse_account, metavar="NAME=ACTUAL[:PROJECTED]")
    add_p.add_argument("--liability", action="append", type=parse_account, metavar="NAME=ACTUAL[:PROJECTED]")
    add_p.add_argument("--notes", default="")
    add_p.set_defaults(func=cmd_networth_add)
    list_p = nw_sub.add_parser("list", help="Show snapshots, newest first")
    list_p.add_argument("--format", choices=["json", "csv"], default="json")
    list_p.set_defaults(func=cmd_networth_list)

    backups_p = sub.add_parser("backups", help="List pre-import backups")
    backups_p.set_defaults(func=cmd_backups)

    restore_p = sub.add_parser("restore", help="Restore a pre-import backup")
    restore_p.add_argument("key")
    restore_p.set_defaults(func=cmd_restore)

    logout_p = sub.add_parser("logout", help="Optionally write a final save file, then clear all data")
    choice = logout_p.add_mutually_exclusive_group()
    choice.add_argument("--yes", action="store_true", help="Write a save file without asking")
    choice.add_argument("--no-save", action="store_true", help="Clear without writing a save file")
    logout_p.set_defaults(func=cmd_logout)
    return p


def main(argv: Optional[List[str]] = None, app: Optional[FiquestApp] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 2
    configure_logging(logging.DEBUG if args.debug else logging.WARNING)

    if app is None:
        settings = Settings.load(args.config)
        if getattr(args, "out", None) is not None:
            settings.delivery.download_dir = str(args.out)
        app = FiquestApp(settings, register_exit=False)

    try:
        app.start()
        return args.func(app, args)
    except FiquestError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        app.shutdown()
        _print_notices(app)


if __name__ == "__main__":
    raise SystemExit(main())
