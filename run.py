"""towngen CLI entry point.

Provides subcommands for running the HTTP server, generating a town to disk
and importing an edited DOT graph against a previously generated town.
Accepts configuration via flags and environment variables, with optional .env
loading.

Run `python run.py --help` for details.
"""

import argparse
import os
import sys
from textwrap import dedent

from colorama import Fore, Style
from colorama import init as _color_init
from dotenv import load_dotenv

_color_init()

# Disable colors if output is not a real terminal (e.g., during pytest capture)
_COLOR_ENABLED = sys.stdout.isatty()

GENERATED_FILES = ("world.json", "world.dot")
IMPORTED_FILES = ("imported_world.json", "imported_world.dot")


def _load_version() -> str:
    from towngen import __version__ as version

    return version


__version__ = _load_version()


def _c(color: str, text: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}" if _COLOR_ENABLED else text


def parse_args(argv: list[str]) -> argparse.Namespace:
    description = """
    Town generator

    Generate towns (connectivity graph, buildings, rooms, inhabitants) from a
    seed, export them as JSON and DOT, and re-import an edited DOT graph to
    regenerate only what the edit touched. Generation options come from
    TOWNGEN_* environment variables and can be overridden by flags.
    """

    epilog = dedent(
        """
        Environment variables:
          HOST                   Bind address for the web server (default: 0.0.0.0)
          PORT                   Port for the web server (default: 5000)
          TOWNGEN_DATABASE_URL   SQLAlchemy database URI (default: sqlite:///instance/towngen.db)
          TOWNGEN_CONFIG_FILE    JSON file of generation options
          TOWNGEN_TOWN_SIZE, TOWNGEN_ROOM_SIZE_MAX, ...   any generation option
          TOWNGEN_LOG_LEVEL      debug|info|warn|error for generation logs (default: warn)

        Examples:
          # Generate a town for a seed into ./output
          python run.py generate --seed 42 --out output

          # Edit output/world.dot, then rebuild the affected buildings
          python run.py import output/world.dot --world output/world.json --out output

          # Run the HTTP API on a custom port
          python run.py serve --port 8080
        """
    )

    parser = argparse.ArgumentParser(
        prog="towngen",
        description=dedent(description),
        epilog=epilog,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "--env-file",
        dest="env_file",
        help="Path to a .env file to load before processing flags",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"towngen {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # serve subcommand
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP API server",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    serve_parser.add_argument("--host", default=None, help="Host interface to bind (default: env HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on (default: env PORT or 5000)")
    serve_parser.add_argument("--db", dest="db_uri", default=None, help="Database URI (default: env TOWNGEN_DATABASE_URL)")
    serve_parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    serve_parser.set_defaults(command="serve")

    # generate subcommand
    gen_parser = subparsers.add_parser(
        "generate",
        help="Generate a town and write world.json / world.dot",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    gen_parser.add_argument("--seed", default=None, help="Integer seed or any word (default: random)")
    gen_parser.add_argument("--out", default="output", help="Output directory (default: ./output)")
    gen_parser.add_argument("--size", dest="town_size", type=int, default=None, help="Number of locations")
    gen_parser.add_argument("--density", dest="population_density", default=None,
                            choices=["none", "low", "medium", "high"], help="Population density preset")
    gen_parser.add_argument("--workers", type=int, default=None, help="Worker threads for building generation")
    gen_parser.set_defaults(command="generate")

    # import subcommand
    imp_parser = subparsers.add_parser(
        "import",
        help="Apply an edited .dot graph to a generated town",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    imp_parser.add_argument("dot", help="Edited graph, must end with .dot")
    imp_parser.add_argument("--world", required=True, help="world.json written by `generate`")
    imp_parser.add_argument("--out", default="output", help="Output directory (default: ./output)")
    imp_parser.add_argument("--workers", type=int, default=None, help="Worker threads for building generation")
    imp_parser.set_defaults(command="import")

    # If no subcommand provided, default to serve
    if len(argv) == 0:
        argv = ["serve"]
    return parser.parse_args(argv)


def _read(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _write_exports(out_dir: str, exports: dict, names) -> list:
    os.makedirs(out_dir, exist_ok=True)
    written = []
    for key, name in zip(("json", "dot"), names):
        path = os.path.join(out_dir, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(exports[key])
        written.append(path)
    return written


def cmd_generate(args) -> int:
    from towngen.settings import load_config
    from towngen.town import TownWorkspace

    overrides = {"townSize": args.town_size, "populationDensity": args.population_density, "workers": args.workers}
    ws = TownWorkspace(load_config(overrides))
    town = ws.generate(seed=args.seed)
    for path in _write_exports(args.out, ws.exports, GENERATED_FILES):
        print(f"{_c(Fore.GREEN, 'wrote')} {path}")
    print(f"{town.name}: seed {town.seed}, {len(town.graph.nodes)} locations, "
          f"{town.metrics['rooms']} rooms, {town.metrics['population']} inhabitants/objects")
    return 0


def cmd_import(args) -> int:
    from towngen.town import TownWorkspace

    if not args.dot.endswith(".dot"):
        print(_c(Fore.RED, "[ERROR] File name must end with .dot"), file=sys.stderr)
        return 2
    ws = TownWorkspace()
    ws.load_json(_read(args.world))
    result = ws.reconcile(_read(args.dot), workers=args.workers)
    summary = result.diff.summary()
    for path in _write_exports(args.out, ws.exports, IMPORTED_FILES):
        print(f"{_c(Fore.GREEN, 'wrote')} {path}")
    print(
        f"revision {result.town.revision}: +{len(summary['nodesAdded'])} / -{len(summary['nodesRemoved'])} "
        f"/ ~{len(summary['nodesChanged'])} nodes, "
        f"{result.town.metrics.get('buildings_rebuilt', 0)} buildings rebuilt, "
        f"{result.town.metrics.get('buildings_preserved', 0)} preserved"
    )
    return 0


def main(argv: list[str]) -> int:
    args = parse_args(argv)
    if getattr(args, "env_file", None):
        load_dotenv(args.env_file)
    else:
        # Load default .env if present (no error if missing)
        load_dotenv()

    mode = (getattr(args, "command", None) or "serve").lower()

    from towngen.logging_utils import log
    from towngen.town import TownGenError

    log.info(event="startup", mode=mode)
    try:
        if mode == "generate":
            return cmd_generate(args)
        if mode == "import":
            return cmd_import(args)
    except TownGenError as e:
        print(_c(Fore.RED, f"[ERROR] {e.code}: {e}"), file=sys.stderr)
        for k, v in e.details.items():
            print(f"  {k}: {v}", file=sys.stderr)
        return 1
    except OSError as e:
        print(_c(Fore.RED, f"[ERROR] {e}"), file=sys.stderr)
        return 1

    host = getattr(args, "host", None) or os.getenv("HOST", "0.0.0.0")
    port = int(getattr(args, "port", None) or os.getenv("PORT", "5000"))
    db_uri = getattr(args, "db_uri", None)
    divider = _c(Fore.MAGENTA, "=" * 40)
    print("\n".join([
        divider,
        f"  {_c(Fore.CYAN + Style.BRIGHT, 'Town Generator Server')}",
        divider,
        f"  {_c(Fore.YELLOW, 'Host:'):12} {host}",
        f"  {_c(Fore.YELLOW, 'Port:'):12} {port}",
        f"  {_c(Fore.YELLOW, 'Database:'):12} {db_uri or os.getenv('TOWNGEN_DATABASE_URL') or 'auto (instance/towngen.db)'}",
        divider,
        "",
    ]))
    from towngen.server import start_server

    start_server(host=host, port=port, debug=getattr(args, "debug", False), db_uri=db_uri)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
