"""
CLI command implementations.

- serve: run the poll loop and task workers until interrupted
- add-task: create a cloud sync task
- switch: enable a task or disable it and request its stop
- run-once: execute one reconciliation synchronously
- next-trigger: print the minutes until a period next fires
- list-running: print the tasks announced on the started set
"""

import argparse
import logging
import sys

import redis

from utils.logging import shutdown_logging
from utils.metrics import initialize_metrics
from utils.tracing import initialize_tracing, instrument_requests, shutdown_tracing

from ..clients import InventoryClient, tencent_client_factory
from ..config import SyncSettings
from ..errors import CloudSyncError
from ..manager import SyncManager
from ..models import BK_STATUS, CloudSyncTask, StopRequest
from ..period import describe, next_trigger, parse_period
from ..reconcile import CloudSyncReconciler
from ..signals import SignalQueue

logger = logging.getLogger(__name__)


def load_settings(args: argparse.Namespace) -> SyncSettings:
    """
    Settings from the environment with CLI flags applied on top

    Args:
        args: Parsed command-line arguments
    """
    return SyncSettings.from_env().override(
        inventory_url=getattr(args, 'inventory_url', None),
        redis_url=getattr(args, 'redis_url', None),
        owner_id=getattr(args, 'owner_id', None),
        inventory_timeout=getattr(args, 'inventory_timeout', None),
        poll_interval_minutes=getattr(args, 'poll_interval', None),
        signal_pop_timeout=getattr(args, 'signal_pop_timeout', None),
        metrics_port=getattr(args, 'metrics_port', None),
        otlp_endpoint=getattr(args, 'otlp_endpoint', None),
    )


def build_manager(settings: SyncSettings, metrics=None) -> SyncManager:
    """
    Wire the inventory client, signal queue and reconciler into a manager

    Args:
        settings: Validated settings
        metrics: SyncMetrics to record into (default: process-wide metrics)
    """
    inventory = InventoryClient(
        settings.inventory_url,
        owner_id=settings.owner_id,
        timeout=settings.inventory_timeout,
    )
    reconciler = CloudSyncReconciler(
        inventory,
        cloud_client_factory=tencent_client_factory(),
        metrics=metrics,
    )
    return SyncManager(
        inventory,
        SignalQueue.from_url(settings.redis_url),
        reconciler,
        owner_id=settings.owner_id,
        poll_interval_minutes=settings.poll_interval_minutes,
        signal_pop_timeout=settings.signal_pop_timeout,
        metrics=metrics,
    )


def _settings_or_exit(args: argparse.Namespace) -> SyncSettings:
    settings = load_settings(args)
    try:
        settings.validate()
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)
    return settings


def cmd_serve(args: argparse.Namespace) -> None:
    """
    Run the sync service until interrupted

    Args:
        args: Parsed command-line arguments
    """
    settings = _settings_or_exit(args)

    metrics = None
    if settings.metrics_port:
        try:
            metrics = initialize_metrics(port=settings.metrics_port, owner_id=settings.owner_id)["sync"]
        except RuntimeError as e:
            logger.error(f"Failed to start metrics server: {e}")
            sys.exit(1)

    initialize_tracing(otlp_endpoint=settings.otlp_endpoint)
    instrument_requests()

    manager = build_manager(settings, metrics=metrics)
    logger.info("Starting cloud sync service (press Ctrl+C to stop)")
    try:
        manager.start(block=True, run_immediately=args.run_immediately)
    finally:
        shutdown_tracing()
        shutdown_logging()


def cmd_add_task(args: argparse.Namespace) -> None:
    """
    Create a cloud sync task

    Args:
        args: Parsed command-line arguments
    """
    settings = _settings_or_exit(args)
    manager = build_manager(settings)

    task = CloudSyncTask(
        task_id=0,
        task_name=args.name,
        owner_id=settings.owner_id,
        period_type=args.period_type,
        period=args.period,
        status=not args.disabled,
        account_type=args.account_type,
        account_admin=args.account_admin,
        secret_id=args.secret_id,
        secret_key=args.secret_key,
        credential_path=args.credential_path,
        obj_id=args.obj_id,
        attr_confirm=args.attr_confirm,
        resource_confirm=args.resource_confirm,
    )

    try:
        manager.add_task(task)
    except CloudSyncError as e:
        logger.error(f"Failed to create task: {e}")
        sys.exit(1)

    print(f"Created task '{task.task_name}' ({describe(parse_period(task.period_type, task.period))})")


def cmd_switch(args: argparse.Namespace) -> None:
    """
    Enable a task, or disable it and publish a stop request

    An enabled task is picked up by the serving instances on their next
    adoption pass.

    Args:
        args: Parsed command-line arguments
    """
    settings = _settings_or_exit(args)
    manager = build_manager(settings)

    try:
        manager.inventory.update_task_summary(args.task_id, {BK_STATUS: bool(args.enable)})
        if args.disable:
            manager.signals.request_stop(StopRequest(task_id=args.task_id, owner_id=settings.owner_id))
    except (CloudSyncError, redis.RedisError) as e:
        logger.error(f"Failed to switch task {args.task_id}: {e}")
        sys.exit(1)

    if args.enable:
        print(f"Task {args.task_id} enabled; serving instances adopt it on their next poll")
    else:
        print(f"Task {args.task_id} disabled; stop requested")


def cmd_run_once(args: argparse.Namespace) -> None:
    """
    Execute one reconciliation and exit non-zero if it failed

    Args:
        args: Parsed command-line arguments
    """
    settings = _settings_or_exit(args)
    manager = build_manager(settings)

    try:
        outcome = manager.run_once(args.task_id)
    except CloudSyncError as e:
        logger.error(f"Cannot run task {args.task_id}: {e}")
        sys.exit(1)

    print(
        f"Task {outcome.task_id}: {outcome.status} "
        f"(new_add={outcome.new_add}, attr_changed={outcome.attr_changed}, "
        f"took {outcome.time_consume})"
    )
    if not outcome.succeeded:
        if outcome.error:
            print(f"  error: {outcome.error}")
        sys.exit(1)


def cmd_next_trigger(args: argparse.Namespace) -> None:
    """
    Print the minutes until a period next fires

    Args:
        args: Parsed command-line arguments
    """
    try:
        period = parse_period(args.period_type, args.period)
    except CloudSyncError as e:
        logger.error(str(e))
        sys.exit(1)

    print(f"{next_trigger(period)} minute(s) until next run ({describe(period)})")


def cmd_list_running(args: argparse.Namespace) -> None:
    """
    Print every task announced as started by any instance

    Args:
        args: Parsed command-line arguments
    """
    settings = load_settings(args)
    signals = SignalQueue.from_url(settings.redis_url)

    try:
        announcements = signals.started_tasks()
    except redis.RedisError as e:
        logger.error(f"Cannot read started tasks: {e}")
        sys.exit(1)

    if not announcements:
        print("No started tasks announced")
        return

    for a in announcements:
        print(f"task {a.task_id}\towner {a.owner_id}\tadmin {a.account_admin or '-'}\tsince {a.start_time}")
