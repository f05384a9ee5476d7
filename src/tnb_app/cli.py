from __future__ import annotations

import argparse
import logging
import random
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional

from dotenv import load_dotenv

from tnb_app.config import AppConfig, load_app_config
from tnb_core.chat import NumberBot, Transcript, reply_delay
from tnb_core.evaluator import ConfidenceFormula, Mode
from tnb_core.history import EXPORT_FILENAME, HistoryLog, format_history_line
from tnb_core.parsing import format_refs, parse_refs
from tnb_core.run_artifacts import build_session_artifact, write_session_artifact
from tnb_core.settings import BotSettings, SettingsStore
from tnb_core.store import JsonFileStore

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class App:
    """Wires config, stores and the bot for one CLI invocation."""

    def __init__(self, cfg: AppConfig, *, delay: bool = True):
        self.cfg = cfg
        store = JsonFileStore(cfg.state_dir)
        self.settings = SettingsStore(store, default_refs=cfg.default_refs)
        self.history = HistoryLog(store, limit=cfg.history_limit)
        self.bot = NumberBot(self.settings, self.history)
        self.transcript = Transcript()
        self.wait: Optional[Callable[[], None]] = self._sleep if delay else None

    def _sleep(self) -> None:
        time.sleep(reply_delay(random.Random(), base=self.cfg.reply_delay_base, jitter=self.cfg.reply_delay_jitter))


def _print_turns(transcript: Transcript, start: int) -> None:
    for msg in transcript.messages[start:]:
        print(msg.as_text())
        print()


def _one_off_settings(app: App, args: argparse.Namespace) -> BotSettings:
    s = app.settings.load()
    if args.refs is not None:
        s = replace(s, refs=tuple(parse_refs(args.refs)))
    if args.mode is not None:
        s = replace(s, mode=Mode(args.mode))
    if args.conf is not None:
        s = replace(s, conf=ConfidenceFormula(args.conf))
    if args.scale is not None:
        s = replace(s, scale=args.scale)
    return s


def cmd_ask(app: App, args: argparse.Namespace) -> int:
    s = _one_off_settings(app, args)
    start = len(app.transcript.messages)
    failed = False
    for raw in args.values:
        turn = app.bot.send(raw, app.transcript, settings=s, wait=app.wait)
        if turn is not None and not turn.ok:
            failed = True
    _print_turns(app.transcript, start)
    return 1 if failed else 0


def cmd_examples(app: App, args: argparse.Namespace) -> int:
    start = len(app.transcript.messages)
    app.bot.run_examples(app.transcript, wait=app.wait)
    _print_turns(app.transcript, start)
    return 0


def cmd_history(app: App, args: argparse.Namespace) -> int:
    if args.clear:
        app.history.clear()
        print("History cleared.")
        return 0
    entries = app.history.newest_first()
    if not entries:
        print("No history")
        return 0
    for e in entries[: args.limit] if args.limit else entries:
        print(format_history_line(e))
    return 0


def cmd_export(app: App, args: argparse.Namespace) -> int:
    entries = app.history.load()
    if not entries:
        print("No history")
        return 1
    out = Path(args.out)
    out.write_text(app.history.export_csv(entries), encoding="utf-8")
    print(f"Wrote: {out} ({len(entries)} rows)")
    return 0


def cmd_refs(app: App, args: argparse.Namespace) -> int:
    if args.reset:
        s = app.settings.reset_refs()
        print("Reset to defaults:", format_refs(s.refs))
    elif args.set is not None:
        s = app.settings.save_refs(parse_refs(args.set))
        print("Saved refs:", format_refs(s.refs))
    else:
        print(format_refs(app.settings.load().refs))
    return 0


def cmd_settings(app: App, args: argparse.Namespace) -> int:
    if args.mode is None and args.conf is None and args.scale is None:
        s = app.settings.load()
    else:
        s = app.settings.update(mode=args.mode, conf=args.conf, scale=args.scale)
    for k, v in s.to_dict().items():
        print(f"{k}: {format_refs(v) if k == 'refs' else v}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="tnb", description="TinyNumberBot: find the closest reference number.")
    ap.add_argument("--env-file", default=".env")
    ap.add_argument("--config", default=None, help="YAML config file (default: $TNB_CONFIG).")
    ap.add_argument("--state-dir", default=None, help="Where settings/history are kept.")
    ap.add_argument("--no-delay", action="store_true", help="Skip the artificial typing pause.")
    ap.add_argument("--artifact", action="store_true", help="Write a session artifact JSON after the command.")
    ap.add_argument("-v", "--verbose", action="store_true")

    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("ask", help="Send one or more numbers.")
    p.add_argument("values", nargs="+")
    p.add_argument("--refs", default=None, help="Comma-separated refs for this call only.")
    p.add_argument("--mode", choices=[m.value for m in Mode], default=None)
    p.add_argument("--conf", choices=[c.value for c in ConfidenceFormula], default=None)
    p.add_argument("--scale", type=float, default=None)
    p.set_defaults(func=cmd_ask)

    p = sub.add_parser("examples", help="Send the built-in example queries (2 and -30).")
    p.set_defaults(func=cmd_examples)

    p = sub.add_parser("history", help="List past answers, newest first.")
    p.add_argument("--limit", type=int, default=0)
    p.add_argument("--clear", action="store_true")
    p.set_defaults(func=cmd_history)

    p = sub.add_parser("export", help="Export history as CSV.")
    p.add_argument("--out", default=EXPORT_FILENAME)
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("refs", help="Show, save or reset the reference list.")
    g = p.add_mutually_exclusive_group()
    g.add_argument("--set", default=None, metavar="TEXT")
    g.add_argument("--reset", action="store_true")
    p.set_defaults(func=cmd_refs)

    p = sub.add_parser("settings", help="Show or change mode/formula/scale.")
    p.add_argument("--mode", choices=[m.value for m in Mode], default=None)
    p.add_argument("--conf", choices=[c.value for c in ConfidenceFormula], default=None)
    p.add_argument("--scale", type=float, default=None)
    p.set_defaults(func=cmd_settings)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    load_dotenv(dotenv_path=Path(args.env_file))

    try:
        cfg = load_app_config(args.config)
        if args.state_dir:
            cfg = replace(cfg, state_dir=Path(args.state_dir))
        app = App(cfg, delay=not args.no_delay)
        logger.debug("command=%s state_dir=%s", args.command, cfg.state_dir)
        rc = args.func(app, args)
    except (ValueError, FileNotFoundError) as e:
        print(f"error: {e}")
        return 2

    if args.artifact:
        artifact = build_session_artifact(
            run_source=f"tnb {args.command}",
            settings=app.settings.load(),
            history=app.history.load(),
            transcript=app.transcript.messages,
        )
        print("Wrote session artifact:", write_session_artifact(artifact, runs_dir=cfg.runs_dir))

    return rc


if __name__ == "__main__":
    raise SystemExit(main())
