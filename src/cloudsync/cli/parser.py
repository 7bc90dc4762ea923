"""
Command-line argument parser configuration.

This module sets up the argument parser for the cloudsync CLI tool,
defining all commands and their options.
"""

import argparse

from ..period import PERIOD_DAY, PERIOD_HOUR, PERIOD_MINUTE


def _add_connection_options(parser: argparse.ArgumentParser) -> None:
    """Options shared by every command that talks to the inventory or Redis."""
    parser.add_argument('--inventory-url', help='Inventory service API root (env: INVENTORY_URL)')
    parser.add_argument('--redis-url', help='Shared signal store URL (env: REDIS_URL)')
    parser.add_argument('--owner-id', help='Tenant served by this instance (env: CLOUDSYNC_OWNER_ID)')
    parser.add_argument(
        '--inventory-timeout',
        type=float,
        help='Inventory request timeout in seconds (env: INVENTORY_TIMEOUT)'
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog='cloudsync',
        description="Cloud host inventory synchronization service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the sync service, adopting tasks every 5 minutes
  cloudsync serve --inventory-url http://cmdb:8080/api/v3 --redis-url redis://redis:6379/0

  # Create a daily task that queues new hosts for confirmation
  cloudsync add-task --name tencent-prod --period-type day --period 03:30 \\
      --account-type tencent_cloud --credential-path cloud/tencent-prod --resource-confirm

  # Disable a task and ask whichever instance runs it to stop
  cloudsync switch --task-id 12 --disable

  # Run one reconciliation now
  cloudsync run-once --task-id 12

  # Minutes until an hourly task at minute 15 fires
  cloudsync next-trigger --period-type hour --period 15
        """
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level (default: INFO)'
    )
    parser.add_argument(
        '--log-json',
        action='store_true',
        help='Emit logs as JSON lines'
    )
    parser.add_argument(
        '--log-file',
        help='Also write logs to this rotating file'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # ========== Serve command ==========
    serve_parser = subparsers.add_parser('serve', help='Run the sync service')
    _add_connection_options(serve_parser)
    serve_parser.add_argument(
        '--poll-interval',
        type=float,
        help='Minutes between task adoption and stop-signal passes (default: 5)'
    )
    serve_parser.add_argument(
        '--signal-pop-timeout',
        type=float,
        help='Seconds to wait for a stop request per pop (default: 1)'
    )
    serve_parser.add_argument(
        '--metrics-port',
        type=int,
        help='Prometheus metrics port, 0 disables (default: 9091)'
    )
    serve_parser.add_argument(
        '--otlp-endpoint',
        help='OpenTelemetry collector endpoint (env: OTLP_ENDPOINT)'
    )
    serve_parser.add_argument(
        '--run-immediately',
        action='store_true',
        help='Adopt tasks right away instead of after the first poll interval'
    )

    # ========== Add-task command ==========
    add_parser = subparsers.add_parser('add-task', help='Create a cloud sync task')
    _add_connection_options(add_parser)
    add_parser.add_argument('--name', required=True, help='Unique task name')
    add_parser.add_argument(
        '--period-type',
        required=True,
        choices=[PERIOD_DAY, PERIOD_HOUR, PERIOD_MINUTE],
        help='Trigger period type'
    )
    add_parser.add_argument(
        '--period',
        default='',
        help='HH:MM for "day", minute 0-59 for "hour", ignored for "minute"'
    )
    add_parser.add_argument('--account-type', default='tencent_cloud', help='Cloud account type')
    add_parser.add_argument('--account-admin', default='', help='Account administrator')
    add_parser.add_argument('--secret-id', default='', help='Cloud API secret id')
    add_parser.add_argument('--secret-key', default='', help='Cloud API secret key')
    add_parser.add_argument(
        '--credential-path',
        default='',
        help='Vault KV path holding secret_id/secret_key (instead of inline keys)'
    )
    add_parser.add_argument('--obj-id', default='host', help='Inventory object type (default: host)')
    add_parser.add_argument(
        '--attr-confirm',
        action='store_true',
        help='Queue attribute changes for confirmation instead of applying them'
    )
    add_parser.add_argument(
        '--resource-confirm',
        action='store_true',
        help='Queue new hosts for confirmation instead of creating them'
    )
    add_parser.add_argument(
        '--disabled',
        action='store_true',
        help='Create the task disabled'
    )

    # ========== Switch command ==========
    switch_parser = subparsers.add_parser('switch', help='Enable or disable a task')
    _add_connection_options(switch_parser)
    switch_parser.add_argument('--task-id', type=int, required=True, help='Task id')
    state_group = switch_parser.add_mutually_exclusive_group(required=True)
    state_group.add_argument('--enable', action='store_true', help='Enable the task')
    state_group.add_argument('--disable', action='store_true', help='Disable the task and request a stop')

    # ========== Run-once command ==========
    run_parser = subparsers.add_parser('run-once', help='Execute one reconciliation of a task')
    _add_connection_options(run_parser)
    run_parser.add_argument('--task-id', type=int, required=True, help='Task id')

    # ========== Next-trigger command ==========
    trigger_parser = subparsers.add_parser('next-trigger', help='Minutes until a period next fires')
    trigger_parser.add_argument(
        '--period-type',
        required=True,
        choices=[PERIOD_DAY, PERIOD_HOUR, PERIOD_MINUTE],
        help='Trigger period type'
    )
    trigger_parser.add_argument('--period', default='', help='Period value')

    # ========== List-running command ==========
    list_parser = subparsers.add_parser('list-running', help='Show tasks announced as started')
    _add_connection_options(list_parser)

    return parser
