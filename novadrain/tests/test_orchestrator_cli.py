import json
from unittest.mock import patch

import pytest

from novadrain import cli
from novadrain.errors import AdmissionChangeError, NovaAPIError
from novadrain.models import VM
from novadrain.orchestrator import NodeDrainer, build_node, run_once


@pytest.fixture
def patched(nova):
    with patch("novadrain.orchestrator.get_client", return_value=nova), \
         patch("novadrain.cli.get_client", return_value=nova), \
         patch("novadrain.cli.setup_logging"):
        yield nova


# ---------------------------------------------------------------------------
# NodeDrainer / run_once
# ---------------------------------------------------------------------------
def test_build_node_prefers_explicit_hostname():
    node = build_node("cmp-42")
    assert node.hostname == "cmp-42"
    assert node.body_params == {"binary": "nova-compute", "host": "cmp-42"}


def test_node_drainer_exposes_scheduling_state(nova, node, make_service):
    nova.services = [make_service(status="disabled")]
    drainer = NodeDrainer(node, nova, step=0.01)

    assert drainer.refresh_state() is False
    assert drainer.scheduling_enabled is False
    drainer.enable()
    assert drainer.scheduling_enabled is True


def test_run_once_disables_then_drains(patched, make_service):
    patched.services = [make_service()]
    patched.vms = [VM(id="vm-a", host_id="h0")]
    patched.hosts = {"vm-a": ["h1"]}

    result = run_once(timeout_min=1, hostname="cmp-01")

    assert result.all_migrated is True
    assert patched.scheduling_calls == [("cmp-01", "nova-compute", False)]


def test_run_once_skips_disable_when_already_disabled(patched, make_service):
    patched.services = [make_service(status="disabled")]

    result = run_once(timeout_min=1, hostname="cmp-01")

    assert result.all_migrated is True
    assert patched.scheduling_calls == []


def test_run_once_dry_run_changes_nothing(patched, make_service):
    patched.services = [make_service()]
    patched.vms = [VM(id="vm-a", host_id="h0")]

    assert run_once(timeout_min=1, dry_run=True, hostname="cmp-01") is None

    assert patched.scheduling_calls == []
    assert dict(patched.migration_calls) == {}


def test_run_once_stops_when_disable_fails(patched, make_service):
    patched.services = [make_service()]
    patched.vms = [VM(id="vm-a", host_id="h0")]
    patched.scheduling_errors = [NovaAPIError("x", 500)] * 3

    with pytest.raises(AdmissionChangeError):
        run_once(timeout_min=1, hostname="cmp-01")

    assert dict(patched.migration_calls) == {}


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def test_cli_disable(patched):
    assert cli.main(["--host", "cmp-01", "disable"]) == 0
    assert patched.scheduling_calls == [("cmp-01", "nova-compute", False)]


def test_cli_status_json(patched, make_service, tmp_path):
    patched.services = [make_service(status="disabled")]
    out = tmp_path / "status.json"

    assert cli.main(["--host", "cmp-01", "status", "--json", str(out)]) == 0

    data = json.loads(out.read_text())
    assert data["hostname"] == "cmp-01"
    assert data["scheduling_enabled"] is False
    assert data["service"]["status"] == "disabled"
    assert patched.list_services_calls == 1


def test_cli_drain_json(patched, tmp_path):
    patched.vms = [VM(id="vm-a", host_id="h0")]
    patched.hosts = {"vm-a": ["h1"]}
    out = tmp_path / "drain.json"

    assert cli.main(["--host", "cmp-01", "drain", "--timeout", "1", "--json", str(out)]) == 0

    data = json.loads(out.read_text())
    assert data == {
        "all_migrated": True,
        "timed_out": False,
        "per_vm_status": {"vm-a": "migrated"},
        "hostname": "cmp-01",
    }


def test_cli_drain_enumeration_failure(patched, capsys):
    patched.vm_list_error = NovaAPIError("servers unavailable", 503)

    assert cli.main(["--host", "cmp-01", "drain"]) == 1

    assert "Cannot update server list" in capsys.readouterr().err


def test_cli_without_command_prints_help(capsys):
    assert cli.main([]) == 2
    assert "nova-drain" in capsys.readouterr().out
