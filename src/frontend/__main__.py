from __future__ import annotations
import argparse, os, shutil, sys
from typing import IO
from jqlive import Engine
from jqlive.errors import QueryError
from jqlive.render import strip_ansi

def _supports_color(stream: IO[str]) -> bool:
    return stream.isatty() and os.environ.get("NO_COLOR", "") == ""

CSI = "\033["
def _c(text: str, code: str) -> str:
    if not _supports_color(sys.stdout): return text
    return f"{CSI}{code}m{text}{CSI}0m"

def _clear_screen():
    # ANSI clear; fallback to a blank line if not a TTY
    if sys.stdout.isatty():
        print("\033[2J\033[H", end="", flush=True)
    else:
        print()

def _strip_ansi_if_needed(line: str) -> str:
    return line if _supports_color(sys.stdout) else strip_ansi(line)

def _print_window(eng: Engine, width: int, height: int) -> None:
    for row in eng.visible_lines(width, height):
        print(_strip_ansi_if_needed(row).rstrip())

def _print_keys(eng: Engine) -> None:
    keys = eng.panel_keys()
    label = "Matching keys" if eng.context.incomplete else "Available keys"
    if not keys:
        print(_c("(no matches)" if eng.context.incomplete else "(no keys)", "2;37")); return
    shown = ", ".join(keys[:20]) + (f" …+{len(keys) - 20} more" if len(keys) > 20 else "")
    print(_c(f"{label}: ", "2;37") + shown)

def repl(eng: Engine, width: int, height: int) -> int:
    print("Type a jq filter and press Enter (empty line to quit).")
    print(_c("Commands: :tab [n], :hist [n], :left, :right, :home, :end, :up, :down, :telemetry, :clear", "2;37"))

    eng.run(".")
    while True:
        try:
            raw = input("> ")
        except EOFError:
            print(); break
        cmd = raw.strip()
        if raw == "":
            print("Goodbye!"); break

        if cmd.startswith(":"):
            name, _, arg = cmd.partition(" ")
            if name in (":clear", ":cls"):
                _clear_screen(); continue
            if name == ":telemetry":
                print(eng.telemetry_summary() or _c("(telemetry disabled)", "2;36")); continue
            if name == ":tab":
                if not arg:
                    opts = eng.tab()
                    for i, s in enumerate(opts):
                        print(f"{i:<3} {s}")
                    if not opts:
                        print(_c("(no suggestions)", "2;37"))
                    continue
                if not eng.suggestions:
                    eng.tab()
                try:
                    eng.selected_idx = int(arg)
                except ValueError:
                    print(_c("usage: :tab [n]", "2;31")); continue
                if not 0 <= eng.selected_idx < len(eng.suggestions):
                    eng.cancel_suggestions(); print(_c("(no such suggestion)", "2;31")); continue
                eng.accept_suggestion()
            elif name == ":hist":
                items = eng.history.items()
                if not arg:
                    for i, h in enumerate(items):
                        print(f"{i:<3} {h}")
                    if not items:
                        print(_c("(history empty)", "2;37"))
                    continue
                try:
                    eng.select_history(items[int(arg)])
                except (ValueError, IndexError):
                    print(_c("(no such history entry)", "2;31")); continue
            elif name in (":left", ":right"):
                eng.scroll_horizontal(-8 if name == ":left" else 8)
            elif name in (":home", ":end"):
                eng.home() if name == ":home" else eng.end()
            elif name in (":up", ":down"):
                eng.scroll(-height // 2 if name == ":up" else height // 2)
            else:
                print(_c(f"unknown command {name}", "2;31")); continue
            eng.settle()
        else:
            eng.set_filter(raw)
            eng.settle()

        _print_window(eng, width, height)
        if not eng.result.ok:
            print(_c(f"Error: {eng.result.error}", "31"))
        else:
            eng.commit()
        _print_keys(eng)
    return 0

def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Explore a JSON document with live jq filters")
    parser.add_argument("file", nargs="?", default=None, help="JSON file (default: read stdin)")
    parser.add_argument("--filter", default=None, help="Run one filter and print its output")
    parser.add_argument("--keys", default=None, metavar="PATH", help="Print the keys available at PATH")
    parser.add_argument("--suggest", default=None, metavar="TEXT", help="Print suggestions for partial filter TEXT")
    parser.add_argument("--repl", action="store_true", help="Interactive loop")
    parser.add_argument("--serve", action="store_true", help="Serve the Flask UI")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--width", type=int, default=None, help="Output width for --repl")
    parser.add_argument("--height", type=int, default=None, help="Output rows for --repl")
    parser.add_argument("--telemetry", action="store_true", help="Print latency percentiles on exit")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    try:
        eng = Engine.from_path(args.file, telemetry=args.telemetry or None, verbose=args.verbose)
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        if args.serve:
            from .web import create_app
            create_app(eng).run(host=args.host, port=args.port, debug=args.verbose)
            return 0

        if args.keys is not None:
            try:
                for k in eng.cache.keys_at(args.keys):
                    print(k)
            except QueryError as exc:
                print(f"error: {exc}", file=sys.stderr); return 1
            return 0

        if args.suggest is not None:
            opts, ctx = eng.autocomplete.suggest(args.suggest)
            print(f"[context] path={ctx.path!r} incomplete={ctx.incomplete!r} start={ctx.start_pos}")
            for s in opts:
                print(s)
            return 0

        if args.repl:
            size = shutil.get_terminal_size()
            return repl(eng, args.width or size.columns, args.height or max(1, size.lines - 4))

        res = eng.run(args.filter if args.filter is not None else ".")
        if not res.ok:
            print(f"error: {res.error}", file=sys.stderr)
            return 1
        print(res.raw)
        return 0
    finally:
        summary = eng.telemetry_summary()
        if summary:
            print(summary, file=sys.stderr)
        eng.shutdown()

if __name__ == "__main__":
    sys.exit(main())
