import logging
import socket
from typing import Optional

from .config import BACKOFF_STEP_SEC, DRAIN_TIMEOUT_MIN, NODE_HOSTNAME, NOVA_COMPUTE_BINARY
from .models import DrainResult, Node
from .nova_utils import NovaClient, get_client
from .phases import admission, drain, status

log = logging.getLogger(__name__)

def build_node(hostname: Optional[str] = None) -> Node:
    return Node(hostname=hostname or NODE_HOSTNAME or socket.gethostname(), binary=NOVA_COMPUTE_BINARY)


class NodeDrainer:
    """
    Owns one Node and runs every operation against it from the calling thread.
    Migration threads spawned by drain() never read or write the node.
    """

    def __init__(self, node: Node, client: NovaClient, *, step: float = BACKOFF_STEP_SEC):
        self.node = node
        self.client = client
        self.step = step

    @property
    def scheduling_enabled(self) -> bool:
        return self.node.scheduling_enabled

    def refresh_state(self) -> bool:
        return status.refresh_state(self.node, self.client)

    def enable(self) -> None:
        admission.enable(self.node, self.client)

    def disable(self) -> None:
        admission.disable(self.node, self.client)

    def drain(self, timeout: Optional[float]) -> DrainResult:
        return drain.execute(self.node, self.client, timeout, step=self.step)


def run_once(timeout_min: Optional[float] = None, dry_run: bool = False,
             hostname: Optional[str] = None) -> Optional[DrainResult]:
    """
    Full maintenance flow for this node: refresh status -> disable scheduling -> drain.
    A failed or timed-out drain leaves the node disabled; re-enable explicitly when done.
    """
    drainer = NodeDrainer(build_node(hostname), get_client())
    node = drainer.node
    drainer.refresh_state()
    log.info("Node %s scheduling enabled=%s", node.hostname, drainer.scheduling_enabled)

    timeout_min = DRAIN_TIMEOUT_MIN if timeout_min is None else timeout_min
    if dry_run:
        vms = drainer.client.list_vms_on_host(node.hostname)
        log.info("[DRY RUN] Would disable scheduling on %s", node.hostname)
        for vm in vms:
            log.info("[DRY RUN] Would live-migrate VM %s (hostId=%s, status=%s)", vm.id, vm.host_id, vm.status)
        log.info("[DRY RUN] Would wait up to %s min for %d VMs", timeout_min, len(vms))
        return None

    if drainer.scheduling_enabled:
        drainer.disable()
    else:
        log.info("Node %s already disabled.", node.hostname)

    result = drainer.drain(timeout_min * 60)
    log.info("Drain of %s finished: all_migrated=%s migrated=%d failed=%d pending=%d",
             node.hostname, result.all_migrated, len(result.migrated), len(result.failed), len(result.pending))
    return result
