"""
Per-VM live-migration state machine.

PENDING -> ISSUING -> ISSUED_BLOCK | ISSUED_PLAIN -> POLLING -> MIGRATED
                   \\-> ABANDONED (no request accepted; never polled)

Block migration is tried first. When Nova answers that block migration cannot be
used with shared storage the task switches to plain live migration with a fresh
attempt budget. Polling has no attempt cap; it ends when the VM's hostId differs
from the one captured at drain start, or when the shared cancel event is set.
"""
import logging
import threading
from typing import Optional

from ..config import BACKOFF_STEP_SEC, RETRY_NUM
from ..errors import (BlockMigrationUnsupported, MigrationIssueError, MigrationPollError,
                      NovaAPIError, RetryCancelled, RetryError)
from ..models import MigrationState, MigrationStrategy, MigrationTask
from ..nova_utils import NovaClient
from ..utils import linear_backoff, retry_call

log = logging.getLogger(__name__)

def poll_delay(poll_index: int, step: float) -> float:
    """Wait after the poll_index-th (0-based) unchanged poll: 0, step, 2*step, ..."""
    return poll_index * step

def _request(task: MigrationTask, client: NovaClient, block: bool, *,
             cancel: threading.Event, step: float, attempts: int) -> None:
    label = "with" if block else "without"
    retry_call(
        lambda: client.request_live_migration(task.vm_id, block_migration=block),
        attempts=attempts,
        backoff=linear_backoff(step),
        fatal=(BlockMigrationUnsupported,) if block else (),
        cancel=cancel,
        description=f"Request to migrate VM {task.vm_id} {label} BlockMigration",
    )
    log.info("Request to migrate VM %s %s BlockMigration accepted", task.vm_id, label)

def issue(task: MigrationTask, client: NovaClient, *, cancel: threading.Event,
          step: float = BACKOFF_STEP_SEC, attempts: int = RETRY_NUM) -> bool:
    """Get a live-migration request accepted. Returns False when the task was abandoned."""
    task.advance(MigrationState.ISSUING)
    try:
        try:
            _request(task, client, True, cancel=cancel, step=step, attempts=attempts)
            task.advance(MigrationState.ISSUED_BLOCK)
        except BlockMigrationUnsupported:
            log.info("VM %s uses shared storage; switching to live migration without BlockMigration", task.vm_id)
            task.strategy = MigrationStrategy.PLAIN
            _request(task, client, False, cancel=cancel, step=step, attempts=attempts)
            task.advance(MigrationState.ISSUED_PLAIN)
    except RetryError as exc:
        task.error = MigrationIssueError(task.vm_id, exc.last_error)
        task.advance(MigrationState.ABANDONED)
        log.warning("Cannot migrate VM: %s. %s", task.vm_id, task.error)
        return False
    return True

def _host_changed(task: MigrationTask, client: NovaClient) -> bool:
    try:
        vm = client.get_vm(task.vm_id)
    except NovaAPIError as exc:
        raise MigrationPollError(task.vm_id, exc) from exc
    return vm.host_id != task.original_host_id

def poll(task: MigrationTask, client: NovaClient, *, cancel: threading.Event,
         step: float = BACKOFF_STEP_SEC) -> None:
    task.advance(MigrationState.POLLING)
    while True:
        if cancel.is_set():
            raise RetryCancelled(f"polling VM {task.vm_id}")
        try:
            migrated = _host_changed(task, client)
        except MigrationPollError as exc:
            log.warning("%s", exc)
            migrated = False
        task.polls += 1
        if migrated:
            task.advance(MigrationState.MIGRATED)
            log.info("VM: %s has been migrated.", task.vm_id)
            return
        log.info("VM: %s has not been migrated.", task.vm_id)
        if cancel.wait(poll_delay(task.polls - 1, step)):
            raise RetryCancelled(f"polling VM {task.vm_id}")

def run(task: MigrationTask, client: NovaClient, *, cancel: Optional[threading.Event] = None,
        step: float = BACKOFF_STEP_SEC, attempts: int = RETRY_NUM) -> MigrationTask:
    """Drive one VM from PENDING to MIGRATED or ABANDONED, or until cancel is set."""
    if cancel is None:
        cancel = threading.Event()
    try:
        if issue(task, client, cancel=cancel, step=step, attempts=attempts):
            poll(task, client, cancel=cancel, step=step)
    except RetryCancelled:
        task.cancelled = True
        log.warning("Migration of VM %s cancelled in state %s", task.vm_id, task.state.value)
    return task
