import concurrent.futures as cf
import logging
import threading
from typing import Optional

from ..config import BACKOFF_STEP_SEC, RETRY_NUM
from ..errors import NovaAPIError, VMEnumerationError
from ..models import DrainResult, MigrationOutcome, MigrationTask, Node
from ..nova_utils import NovaClient
from . import migrate

log = logging.getLogger(__name__)


def execute(node: Node, client: NovaClient, timeout: Optional[float], *,
            step: float = BACKOFF_STEP_SEC, attempts: int = RETRY_NUM) -> DrainResult:
    """
    Live-migrate every VM resident on node, one thread per VM, and wait for all of them
    under a single deadline of `timeout` seconds (None waits forever).

    On timeout the outcomes known at that instant are returned and the remaining tasks
    are told to stop through a shared cancel event.
    """
    try:
        vms = client.list_vms_on_host(node.hostname)
    except NovaAPIError as exc:
        raise VMEnumerationError(f"Cannot update server list for {node.hostname}: {exc}") from exc

    if not vms:
        log.info("No VMs on %s; nothing to migrate.", node.hostname)
        return DrainResult(all_migrated=True, per_vm_status={})

    tasks = [MigrationTask(vm_id=vm.id, original_host_id=vm.host_id) for vm in vms]
    cancel = threading.Event()
    pool = cf.ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="migrate")
    futures = {
        pool.submit(migrate.run, task, client, cancel=cancel, step=step, attempts=attempts): task
        for task in tasks
    }
    log.info("Migrating %d VMs off %s (timeout=%ss)", len(tasks), node.hostname, timeout)

    done, not_done = cf.wait(futures, timeout=timeout)

    # Snapshot now: anything finishing after the deadline is not folded into this result
    per_vm_status = {task.vm_id: task.outcome for task in tasks}
    for fut in done:
        exc = fut.exception()
        if exc is not None:
            task = futures[fut]
            log.error("Migration task for VM %s crashed: %s", task.vm_id, exc, exc_info=exc)
            per_vm_status[task.vm_id] = MigrationOutcome.FAILED

    if not_done:
        cancel.set()
        pool.shutdown(wait=False, cancel_futures=True)
        log.warning("Time out waiting for live-migration. %d of %d VMs still in flight.", len(not_done), len(tasks))
        return DrainResult(all_migrated=False, per_vm_status=per_vm_status, timed_out=True)

    pool.shutdown(wait=True)
    all_migrated = all(o is MigrationOutcome.MIGRATED for o in per_vm_status.values())
    if all_migrated:
        log.info("All VMs migrated")
    else:
        log.warning("Drain of %s finished with failed migrations: %s", node.hostname,
                    sorted(vm for vm, o in per_vm_status.items() if o is not MigrationOutcome.MIGRATED))
    return DrainResult(all_migrated=all_migrated, per_vm_status=per_vm_status)
