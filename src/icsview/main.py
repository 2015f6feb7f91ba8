from __future__ import annotations

import argparse
import json
import logging
from datetime import date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from .config import load_config
from .controller import CalendarController
from .csv_export import default_export_range, filter_events_by_range, parse_range
from .server import run_server

CONFIG_PATH_DEFAULT = "config.yaml"


def _today(timezone: str) -> date:
    return datetime.now(tz=ZoneInfo(timezone)).date()


def cmd_parse(path: str) -> None:
    events = CalendarController().import_file(path)
    print(json.dumps([e.to_dict() for e in events], indent=2, ensure_ascii=False))


def cmd_export(path: str, start: str | None, end: str | None, out: str | None, today: date) -> None:
    controller = CalendarController(today=lambda: today)
    events = controller.import_file(path)
    if start and end:
        start_date, end_date = parse_range(start, end)
    else:
        start_date, end_date = default_export_range(today)

    filename, text = controller.export(start_date, end_date)
    if out == "-":
        print(text)
        return

    target = Path(out) if out else Path(filename)
    if target.is_dir():
        target = target / filename
    target.write_text(text, encoding="utf-8")
    count = len(filter_events_by_range(events, start_date, end_date))
    print(f"Exported {count} events to {target}")


def main() -> None:
    ap = argparse.ArgumentParser(description="ICS calendar viewer service and tools")
    ap.add_argument("--config", default=CONFIG_PATH_DEFAULT)
    ap.add_argument("--log-level", default="INFO")
    sub = ap.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)

    parse_cmd = sub.add_parser("parse")
    parse_cmd.add_argument("file")

    export = sub.add_parser("export")
    export.add_argument("file")
    export.add_argument("--start", help="YYYY-MM-DD, defaults to first day of this month")
    export.add_argument("--end", help="YYYY-MM-DD, defaults to last day of this month")
    export.add_argument("--out", help="output file or directory; '-' for stdout")

    args = ap.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="[%(asctime)s] [%(levelname)-7s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    load_dotenv()
    cfg = load_config(args.config)

    if args.command == "serve":
        run_server(cfg, host=args.host, port=args.port)
        return

    if args.command == "parse":
        cmd_parse(args.file)
        return

    if args.command == "export":
        cmd_export(args.file, args.start, args.end, args.out, _today(cfg.timezone))
        return


if __name__ == "__main__":
    main()
