"""CLI entrypoint for the Merkle distributor.

Usage:
    merkle-distributor compile -i balances.json [-o distribution.json]
    merkle-distributor serve [--host HOST] [--port PORT] [--artifact PATH]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from merkle_distributor import __version__
from merkle_distributor.balance_map import parse_balance_map
from merkle_distributor.config import settings
from merkle_distributor.exceptions import DistributorError


def _compile(args: argparse.Namespace) -> int:
    try:
        raw = json.loads(Path(args.input).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"ERROR: cannot read {args.input}: {exc}", file=sys.stderr)
        return 1

    try:
        artifact = parse_balance_map(raw)
    except DistributorError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    output = artifact.to_json(indent=2 if args.output else None)
    if args.output:
        Path(args.output).write_text(output + "\n", encoding="utf-8")
        logging.getLogger(__name__).info("Wrote distribution to %s", args.output)
    else:
        print(output)
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    if args.artifact:
        settings.artifact_path = args.artifact

    if not settings.artifact_path:
        print("ERROR: MERKLE_DISTRIBUTOR_ARTIFACT or --artifact must be set", file=sys.stderr)
        return 1

    print(f"Merkle Distributor v{__version__}")
    print(f"   Artifact:    {settings.artifact_path}")
    print(f"   Distributor: {settings.distributor_address}")
    print(f"   Token:       {settings.token_url or '<in-memory>'}")
    print(f"   Listening:   http://{args.host}:{args.port}")
    print()

    uvicorn.run(
        "merkle_distributor.api:app",
        host=args.host,
        port=args.port,
        log_level="info",
    )
    return 0


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    parser = argparse.ArgumentParser(description="Merkle Distributor")
    subparsers = parser.add_subparsers(dest="command", required=True)

    compile_parser = subparsers.add_parser(
        "compile",
        help="Compile a JSON map of account addresses to balances into a Merkle distribution",
    )
    compile_parser.add_argument(
        "-i",
        "--input",
        required=True,
        help="Input JSON file containing a map of account addresses to string balances",
    )
    compile_parser.add_argument(
        "-o",
        "--output",
        help="Write the distribution here instead of stdout",
    )
    compile_parser.set_defaults(handler=_compile)

    serve_parser = subparsers.add_parser("serve", help="Serve claims over HTTP")
    serve_parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Listen host (default: {settings.host})",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Listen port (default: {settings.port})",
    )
    serve_parser.add_argument(
        "--artifact",
        help="Compiled distribution JSON (default: $MERKLE_DISTRIBUTOR_ARTIFACT)",
    )
    serve_parser.set_defaults(handler=_serve)

    args = parser.parse_args(argv)
    sys.exit(args.handler(args))


if __name__ == "__main__":
    main()
