from typing import Optional

from .formatting import console, print_json_data, print_table
from .models import DrainResult, Node, RemoteService

OUTCOME_STYLES = {
    "migrated": "green",
    "pending": "yellow",
    "failed": "red",
}

def print_node_status(node: Node, service: Optional[RemoteService], output_json: Optional[str] = None) -> None:
    data = {
        "hostname": node.hostname,
        "binary": node.binary,
        "scheduling_enabled": node.scheduling_enabled,
        "service": None if service is None else {
            "id": service.id,
            "status": service.status,
            "state": service.state,
            "zone": service.zone,
            "disabled_reason": service.disabled_reason,
        },
    }
    if output_json is not None:
        print_json_data(data, output_json)
        return

    columns = [
        {"header": "Hostname", "key": "hostname", "no_wrap": True},
        {"header": "Binary", "key": "binary", "no_wrap": True},
        {"header": "Status", "key": "status", "no_wrap": True},
        {"header": "State", "key": "state", "no_wrap": True},
        {"header": "Zone", "key": "zone"},
        {"header": "Disabled Reason", "key": "disabled_reason"},
    ]
    row = {
        "hostname": node.hostname,
        "binary": node.binary,
        "status": "enabled" if node.scheduling_enabled else "disabled",
        "state": getattr(service, "state", ""),
        "zone": getattr(service, "zone", ""),
        "disabled_reason": getattr(service, "disabled_reason", "") or "",
    }
    print_table("Compute Service", columns, [row],
                style_map={"enabled": "green", "disabled": "red"}, state_key="status")


def print_drain_result(result: DrainResult, hostname: str, output_json: Optional[str] = None) -> None:
    if output_json is not None:
        data = result.to_dict()
        data["hostname"] = hostname
        print_json_data(data, output_json)
        return

    rows = [{"vm_id": vm, "outcome": outcome.value}
            for vm, outcome in sorted(result.per_vm_status.items())]
    columns = [
        {"header": "VM", "key": "vm_id", "no_wrap": True},
        {"header": "Outcome", "key": "outcome", "no_wrap": True},
    ]
    print_table(f"Drain: {hostname}", columns, rows, style_map=OUTCOME_STYLES, state_key="outcome")

    verdict = "[green]all VMs migrated[/green]" if result.all_migrated else "[red]drain incomplete[/red]"
    timed_out = " (timed out)" if result.timed_out else ""
    console.print(f"[bold]Summary[/bold]: {verdict}{timed_out}  "
                  f"[green]MIGRATED[/green]={len(result.migrated)}  "
                  f"[red]FAILED[/red]={len(result.failed)}  "
                  f"[yellow]PENDING[/yellow]={len(result.pending)}")
