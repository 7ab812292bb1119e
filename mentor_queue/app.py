from __future__ import annotations

# Single entrypoint.
#
#     python -m mentor_queue.app serve --team TEAM=MENTOR [--team ...]
#     python -m mentor_queue.app send join_queue --user-id alice --queue-id Q
#
# Both subcommands forward their remaining arguments to the module they wrap,
# so `serve -h` / `send -h` show the full option list.

import argparse
import sys


def main() -> None:
    parser = argparse.ArgumentParser(description="Mentor Queue System (MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("serve", help="Start the queue service", add_help=False)
    sub.add_parser("send", help="Send one request (join, approve, advance, ...) and print the reply", add_help=False)

    args, rest = parser.parse_known_args()

    if args.cmd == "serve":
        from .service import main as run
    else:
        from .client import main as run

    _dispatch_to_module_main(run, rest)


def _dispatch_to_module_main(module_main, argv: list[str]) -> None:
    old_argv = sys.argv[:]
    try:
        sys.argv = [old_argv[0], *argv]
        module_main()
    finally:
        sys.argv = old_argv


if __name__ == "__main__":
    main()
