import argparse, logging, sys
from typing import Optional

from . import __version__
from .config import DRAIN_TIMEOUT_MIN
from .errors import DrainError, NovaAPIError
from .formatting import run_with_status
from .logging_util import setup_logging
from .nova_utils import get_client
from .orchestrator import NodeDrainer, build_node, run_once
from .phases import status
from .reporting import print_drain_result, print_node_status

log = logging.getLogger(__name__)

def _drainer(args) -> NodeDrainer:
    return NodeDrainer(build_node(args.host), get_client())

def _cmd_status(args) -> int:
    drainer = _drainer(args)
    service = run_with_status("Querying compute services…", status.query_service, drainer.node, drainer.client)
    print_node_status(drainer.node, service, output_json=args.json)
    return 0

def _cmd_enable(args) -> int:
    _drainer(args).enable()
    return 0

def _cmd_disable(args) -> int:
    _drainer(args).disable()
    return 0

def _cmd_drain(args) -> int:
    drainer = _drainer(args)
    result = drainer.drain(args.timeout * 60)
    print_drain_result(result, drainer.node.hostname, output_json=args.json)
    return 0 if result.all_migrated else 1

def _cmd_run(args) -> int:
    result = run_once(timeout_min=args.timeout, dry_run=args.dry_run, hostname=args.host)
    if result is None:
        return 0
    print_drain_result(result, args.host or build_node().hostname)
    return 0 if result.all_migrated else 1

def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="nova-drain",
        description="Disable scheduling on a Nova compute node and live-migrate its VMs away",
    )
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {__version__}")
    parser.add_argument("--host", default=None,
                        help="Compute hostname to act on (default: NODE_HOSTNAME or this machine's hostname)")
    subparsers = parser.add_subparsers(dest="command")

    # Subcommand for reading the node's scheduling status
    parser_status = subparsers.add_parser("status", help="Show the nova-compute service status of the node")
    parser_status.add_argument("--json", nargs="?", const="-", metavar="FILE", help="Output JSON to stdout (no FILE) or write to FILE; skips table")
    parser_status.set_defaults(func=_cmd_status)

    # Subcommands for toggling scheduling
    parser_enable = subparsers.add_parser("enable", help="Enable scheduling on the node")
    parser_enable.set_defaults(func=_cmd_enable)
    parser_disable = subparsers.add_parser("disable", help="Disable scheduling on the node")
    parser_disable.set_defaults(func=_cmd_disable)

    # Subcommand for migrating VMs only (scheduling left as is)
    parser_drain = subparsers.add_parser("drain", help="Live-migrate all VMs off the node")
    parser_drain.add_argument("--timeout", type=float, default=DRAIN_TIMEOUT_MIN, help="Minutes to wait for all migrations (default: %(default)s)")
    parser_drain.add_argument("--json", nargs="?", const="-", metavar="FILE", help="Output JSON to stdout (no FILE) or write to FILE; skips table")
    parser_drain.set_defaults(func=_cmd_drain)

    # Subcommand for the full workflow: refresh -> disable -> drain
    parser_run = subparsers.add_parser("run", help="Disable scheduling, then drain the node")
    parser_run.add_argument("--timeout", type=float, default=DRAIN_TIMEOUT_MIN, help="Minutes to wait for all migrations (default: %(default)s)")
    parser_run.add_argument("--dry-run", "-n", action="store_true", help="Do not make changes; show what would be done")
    parser_run.set_defaults(func=_cmd_run)

    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    setup_logging()
    try:
        return args.func(args)
    except (DrainError, NovaAPIError) as exc:
        log.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
