import logging
from typing import Iterable, Optional

from ..config import RETRY_NUM
from ..errors import RetryError, ServiceNotFound, StatusQueryError
from ..models import Node, RemoteService
from ..nova_utils import NovaClient
from ..utils import retry_call

log = logging.getLogger(__name__)

ENABLED_STATUS = "enabled"

def find_service(services: Iterable[RemoteService], node: Node) -> Optional[RemoteService]:
    for service in services:
        if service.host == node.hostname and service.binary == node.binary:
            return service
    return None

def query_service(node: Node, client: NovaClient, *, attempts: int = RETRY_NUM) -> RemoteService:
    """
    Re-read the node's compute service row from Nova and update node.scheduling_enabled
    only when it changed. Returns the matched service.
    """
    try:
        services = retry_call(client.list_services, attempts=attempts,
                              description="Listing compute services")
    except RetryError as exc:
        raise StatusQueryError(f"Cannot obtain {node.binary} services: {exc.last_error}") from exc.last_error

    service = find_service(services, node)
    if service is None:
        raise ServiceNotFound(node.hostname, node.binary)

    status = service.status == ENABLED_STATUS
    if status != node.scheduling_enabled:
        log.info("Hypervisor status updated. New status = %s", status)
        node.scheduling_enabled = status
    return service

def refresh_state(node: Node, client: NovaClient, *, attempts: int = RETRY_NUM) -> bool:
    """Refresh node.scheduling_enabled from Nova and return it."""
    query_service(node, client, attempts=attempts)
    return node.scheduling_enabled
