import logging

import pytest

from novadrain.errors import AdmissionChangeError, NovaAPIError, ServiceNotFound, StatusQueryError
from novadrain.phases import admission, status


# ---------------------------------------------------------------------------
# refresh_state
# ---------------------------------------------------------------------------
def test_refresh_state_keeps_status_when_unchanged(nova, node, make_service, caplog):
    nova.services = [make_service(status="enabled")]

    with caplog.at_level(logging.INFO, logger="novadrain.phases.status"):
        assert status.refresh_state(node, nova) is True

    assert node.scheduling_enabled is True
    assert "status updated" not in caplog.text


def test_refresh_state_updates_changed_status(nova, node, make_service, caplog):
    nova.services = [make_service(status="disabled")]

    with caplog.at_level(logging.INFO, logger="novadrain.phases.status"):
        assert status.refresh_state(node, nova) is False

    assert node.scheduling_enabled is False
    assert "New status = False" in caplog.text


def test_refresh_state_matches_host_and_binary(nova, node, make_service):
    nova.services = [
        make_service(host="cmp-02", status="disabled"),
        make_service(binary="nova-conductor", status="disabled"),
        make_service(status="enabled"),
    ]
    node.scheduling_enabled = False
    assert status.refresh_state(node, nova) is True
    assert node.scheduling_enabled is True


def test_query_service_returns_matched_row(nova, node, make_service):
    row = make_service(status="disabled")
    nova.services = [make_service(host="cmp-02"), row]

    assert status.query_service(node, nova) == row
    assert node.scheduling_enabled is False
    assert nova.list_services_calls == 1


def test_refresh_state_unknown_status_means_disabled(nova, node, make_service):
    nova.services = [make_service(status="maintenance")]
    assert status.refresh_state(node, nova) is False


def test_refresh_state_retries_listing(nova, node, make_service):
    nova.services = [make_service()]
    nova.service_errors = [NovaAPIError("boom", 503), NovaAPIError("boom", 503)]
    assert status.refresh_state(node, nova) is True
    assert nova.list_services_calls == 3


def test_refresh_state_exhausted(nova, node, make_service):
    last = NovaAPIError("still down", 503)
    nova.services = [make_service(status="disabled")]
    nova.service_errors = [NovaAPIError("down", 503), NovaAPIError("down", 503), last]

    with pytest.raises(StatusQueryError) as excinfo:
        status.refresh_state(node, nova)

    assert excinfo.value.__cause__ is last
    assert nova.list_services_calls == 3
    assert node.scheduling_enabled is True


def test_refresh_state_service_missing(nova, node, make_service):
    nova.services = [make_service(host="cmp-02")]
    with pytest.raises(ServiceNotFound):
        status.refresh_state(node, nova)
    assert node.scheduling_enabled is True


# ---------------------------------------------------------------------------
# enable / disable
# ---------------------------------------------------------------------------
def test_disable_then_enable(nova, node):
    admission.disable(node, nova)
    assert node.scheduling_enabled is False
    admission.enable(node, nova)
    assert node.scheduling_enabled is True
    assert nova.scheduling_calls == [
        ("cmp-01", "nova-compute", False),
        ("cmp-01", "nova-compute", True),
    ]


def test_disable_retries_until_accepted(nova, node):
    nova.scheduling_errors = [NovaAPIError("busy", 500), NovaAPIError("busy", 500)]
    admission.disable(node, nova)
    assert node.scheduling_enabled is False
    assert len(nova.scheduling_calls) == 3


def test_disable_exhausted_leaves_status_unchanged(nova, node):
    last = NovaAPIError("forbidden", 403)
    nova.scheduling_errors = [NovaAPIError("forbidden", 403), NovaAPIError("forbidden", 403), last]

    with pytest.raises(AdmissionChangeError) as excinfo:
        admission.disable(node, nova)

    assert excinfo.value.__cause__ is last
    assert node.scheduling_enabled is True
    assert len(nova.scheduling_calls) == 3


def test_enable_exhausted_leaves_status_unchanged(nova, node):
    node.scheduling_enabled = False
    nova.scheduling_errors = [NovaAPIError("x", 500)] * 3

    with pytest.raises(AdmissionChangeError):
        admission.enable(node, nova)

    assert node.scheduling_enabled is False
