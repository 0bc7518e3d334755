import logging

from ..config import RETRY_NUM
from ..errors import AdmissionChangeError, RetryError
from ..models import Node
from ..nova_utils import NovaClient
from ..utils import retry_call

log = logging.getLogger(__name__)

def _set_scheduling(node: Node, client: NovaClient, enable: bool, attempts: int) -> None:
    action = "enable" if enable else "disable"
    try:
        code = retry_call(
            lambda: client.set_node_scheduling(node.hostname, node.binary, enable),
            attempts=attempts,
            description=f"Request to {action} {node.hostname}",
        )
    except RetryError as exc:
        # fail closed: the cached status keeps its last known value
        log.error("Cannot change node %s state to %sd.", node.hostname, action)
        raise AdmissionChangeError(f"Cannot {action} node {node.hostname}: {exc.last_error}") from exc.last_error

    node.scheduling_enabled = enable
    log.info("Node %s %sd (code %s).", node.hostname, action, code)

def disable(node: Node, client: NovaClient, *, attempts: int = RETRY_NUM) -> None:
    """Stop Nova from scheduling new VMs onto the node."""
    _set_scheduling(node, client, False, attempts)

def enable(node: Node, client: NovaClient, *, attempts: int = RETRY_NUM) -> None:
    _set_scheduling(node, client, True, attempts)
