"""
Command-line interface for cloud host synchronization.

Available commands:
- serve: Run the sync service
- add-task: Create a cloud sync task
- switch: Enable or disable a task
- run-once: Execute one reconciliation of a task
- next-trigger: Minutes until a period next fires
- list-running: Show tasks announced as started
"""

import sys
from typing import Optional, Sequence

from utils.logging import setup_logging

from .commands import (
    build_manager,
    cmd_add_task,
    cmd_list_running,
    cmd_next_trigger,
    cmd_run_once,
    cmd_serve,
    cmd_switch,
    load_settings,
)
from .parser import create_parser

COMMANDS = {
    'serve': cmd_serve,
    'add-task': cmd_add_task,
    'switch': cmd_switch,
    'run-once': cmd_run_once,
    'next-trigger': cmd_next_trigger,
    'list-running': cmd_list_running,
}


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the cloudsync CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        json_format=args.log_json,
    )

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    command(args)


__all__ = [
    'main',
    'create_parser',
    'build_manager',
    'load_settings',
    'cmd_serve',
    'cmd_add_task',
    'cmd_switch',
    'cmd_run_once',
    'cmd_next_trigger',
    'cmd_list_running',
]


if __name__ == '__main__':
    main()
