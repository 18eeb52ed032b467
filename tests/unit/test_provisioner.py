"""
Monitor Provisioner Unit Tests
==============================

End-to-end runs of the provisioning pipeline against MockNetBackend.
"""

import logging
from unittest.mock import AsyncMock

import pytest

from monprov.domain.models import InterfaceMode, PhysicalRadio, ProvisioningHints, RadioInterface
from monprov.infrastructure.provision import (
    MAX_ATTEMPTS,
    MonitorProvisioner,
    ProvisionOutcome,
)
from monprov.infrastructure.wifi import MockNetBackend


def _pi_backend(**kwargs) -> MockNetBackend:
    """Built-in radio serving the AP on phy0, USB dongle on phy1."""
    return MockNetBackend(
        interfaces=kwargs.pop("interfaces", [
            RadioInterface(name="wlan0", mode=InterfaceMode.UNKNOWN, phy="phy0", is_up=True),
            RadioInterface(name="wlan1", mode=InterfaceMode.MANAGED, phy="phy1", is_up=True),
        ]),
        phys=kwargs.pop("phys", [
            PhysicalRadio(name="phy0", supports_monitor=False),
            PhysicalRadio(name="phy1", supports_monitor=True),
        ]),
        **kwargs,
    )


def _provisioner(backend: MockNetBackend, hints: ProvisioningHints | None = None) -> MonitorProvisioner:
    return MonitorProvisioner(backend, hints=hints, canonical="wlan1mon", access_point="wlan0")


def _touches(backend: MockNetBackend, name: str) -> bool:
    return any(name in call[1:] for call in backend.mutations)


# ============================================================================
# Happy path
# ============================================================================


@pytest.mark.asyncio
async def test_in_place_conversion():
    backend = _pi_backend()
    report = await _provisioner(backend).run()

    assert report.outcome == ProvisionOutcome.PROVISIONED
    assert report.strategy == "in-place"
    assert report.source_interface == "wlan1"
    assert report.phy == "phy1"
    assert report.is_up is True
    assert report.final_mode == "monitor"
    assert report.exit_code == 0

    table = backend.snapshot()
    assert table["wlan1mon"] == ("monitor", "phy1", True)
    assert "wlan1" not in table
    assert table["wlan0"] == ("unknown", "phy0", True)


@pytest.mark.asyncio
async def test_report_to_dict():
    report = await _provisioner(_pi_backend()).run()
    d = report.to_dict()

    assert d["outcome"] == "provisioned"
    assert d["canonical"] == "wlan1mon"
    assert d["source_interface"] == "wlan1"
    assert d["phy"] == "phy1"
    assert d["attempts"] == [{"strategy": "in-place", "status": "success", "detail": "wlan1 set to monitor"}]


# ============================================================================
# Access point exclusion
# ============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "interface,phy",
    [
        (None, None),
        ("wlan0", None),
        ("wlan0", "phy0"),
        (None, "phy0"),
        ("wlan0", "phy1"),
        ("wlan1", "phy1"),
        ("wlan9", None),
    ],
)
async def test_access_point_never_touched(interface, phy):
    backend = _pi_backend()
    report = await _provisioner(backend, ProvisioningHints(interface=interface, phy=phy)).run()

    assert report.source_interface != "wlan0"
    assert not _touches(backend, "wlan0")
    assert backend.snapshot()["wlan0"] == ("unknown", "phy0", True)
    assert report.exit_code == 0


@pytest.mark.asyncio
async def test_only_access_point_interface_creates_virtual():
    backend = _pi_backend(
        interfaces=[RadioInterface(name="wlan0", phy="phy0", is_up=True)],
        phys=[PhysicalRadio(name="phy0", supports_monitor=True)],
    )
    report = await _provisioner(backend).run()

    assert report.outcome == ProvisionOutcome.PROVISIONED
    assert report.strategy == "virtual"
    assert report.source_interface is None
    assert backend.snapshot()["wlan1mon"] == ("monitor", "phy0", True)
    assert not _touches(backend, "wlan0")


@pytest.mark.asyncio
async def test_canonical_equal_to_access_point_is_refused():
    backend = _pi_backend()
    provisioner = MonitorProvisioner(backend, canonical="wlan0", access_point="wlan0")
    report = await provisioner.run()

    assert report.outcome == ProvisionOutcome.SKIPPED
    assert backend.calls == []


# ============================================================================
# Idempotence
# ============================================================================


@pytest.mark.asyncio
async def test_second_run_leaves_table_unchanged():
    backend = _pi_backend()
    first = await _provisioner(backend).run()
    after_first = backend.snapshot()
    mutations_before = len(backend.mutations)

    second = await _provisioner(backend).run()

    assert first.outcome == second.outcome == ProvisionOutcome.PROVISIONED
    assert second.strategy == "existing"
    assert second.attempts == []
    assert backend.snapshot() == after_first
    # only the idempotent link-up
    assert backend.mutations[mutations_before:] == [("set_link", "wlan1mon", "up")]


@pytest.mark.asyncio
async def test_existing_interface_on_other_phy_is_replaced():
    backend = _pi_backend(
        interfaces=[
            RadioInterface(name="wlan0", phy="phy0", is_up=True),
            RadioInterface(name="wlan1mon", mode=InterfaceMode.MONITOR, phy="phy1", is_up=True),
            RadioInterface(name="wlan2", mode=InterfaceMode.MANAGED, phy="phy2", is_up=False),
        ],
        phys=[
            PhysicalRadio(name="phy0"),
            PhysicalRadio(name="phy1", supports_monitor=True),
            PhysicalRadio(name="phy2", supports_monitor=True),
        ],
    )
    report = await _provisioner(backend, ProvisioningHints(interface="wlan2", phy="phy2")).run()

    assert report.outcome == ProvisionOutcome.PROVISIONED
    assert report.strategy == "virtual"
    assert backend.snapshot()["wlan1mon"] == ("monitor", "phy2", True)


# ============================================================================
# Skip and failure outcomes
# ============================================================================


@pytest.mark.asyncio
async def test_no_monitor_capable_phy_skips():
    backend = _pi_backend(
        interfaces=[RadioInterface(name="wlan0", phy="phy0", is_up=True)],
        phys=[PhysicalRadio(name="phy0", supports_monitor=False)],
    )
    report = await _provisioner(backend).run()

    assert report.outcome == ProvisionOutcome.SKIPPED
    assert report.exit_code == 0
    assert "wlan1mon" not in backend.snapshot()
    assert backend.mutations == []


@pytest.mark.asyncio
async def test_silent_rename_failure_falls_back_to_virtual():
    backend = _pi_backend(silent_rename_failure=True)
    report = await _provisioner(backend).run()

    assert report.outcome == ProvisionOutcome.PROVISIONED
    assert report.strategy == "virtual"
    assert [a.strategy for a in report.attempts] == ["in-place", "virtual"]
    assert backend.snapshot()["wlan1mon"] == ("monitor", "phy1", True)


@pytest.mark.asyncio
async def test_mode_change_failure_goes_straight_to_virtual():
    backend = _pi_backend(fail_ops={"set_mode"})
    report = await _provisioner(backend).run()

    assert report.outcome == ProvisionOutcome.PROVISIONED
    assert report.strategy == "virtual"
    assert report.attempts[0].status.value == "recoverable"
    table = backend.snapshot()
    assert table["wlan1mon"] == ("monitor", "phy1", True)
    assert table["wlan1"][0] == "managed"


@pytest.mark.asyncio
async def test_both_paths_fail(caplog):
    backend = _pi_backend(fail_ops={"set_mode", "create"})
    with caplog.at_level(logging.ERROR):
        report = await _provisioner(backend).run()

    assert report.outcome == ProvisionOutcome.FAILED
    assert report.exit_code == 0
    assert report.source_interface == "wlan1"
    assert report.phy == "phy1"
    assert report.final_mode == "absent"
    assert "wlan1mon" not in backend.snapshot()

    errors = [r.getMessage() for r in caplog.records if r.levelno >= logging.ERROR]
    assert any("wlan1" in msg and "phy1" in msg for msg in errors)


@pytest.mark.asyncio
async def test_driver_stays_managed_is_bounded():
    backend = _pi_backend(sticky_managed=True)
    report = await _provisioner(backend).run()

    assert report.outcome == ProvisionOutcome.FAILED
    assert len(report.attempts) == MAX_ATTEMPTS
    assert report.final_mode == "managed"
    assert sum(1 for call in backend.mutations if call[0] == "create") == 1


@pytest.mark.asyncio
async def test_phy_hint_without_monitor_skips():
    backend = _pi_backend(fail_ops={"set_mode"})
    report = await _provisioner(backend, ProvisioningHints(phy="phy0")).run()

    assert report.outcome == ProvisionOutcome.SKIPPED
    assert report.attempts == []
    assert backend.mutations == []


@pytest.mark.asyncio
@pytest.mark.parametrize("fail_ops", [set(), {"set_mode"}])
async def test_incapable_dongle_is_left_untouched(fail_ops):
    backend = _pi_backend(
        phys=[
            PhysicalRadio(name="phy0", supports_monitor=False),
            PhysicalRadio(name="phy1", supports_monitor=False),
        ],
        fail_ops=fail_ops,
    )
    report = await _provisioner(backend).run()

    assert report.outcome == ProvisionOutcome.SKIPPED
    assert report.exit_code == 0
    assert report.attempts == []
    assert backend.mutations == []
    table = backend.snapshot()
    assert "wlan1mon" not in table
    assert table["wlan1"] == ("managed", "phy1", True)


@pytest.mark.asyncio
async def test_activation_failure_still_provisioned():
    backend = _pi_backend(fail_ops={"set_link"})
    report = await _provisioner(backend).run()

    assert report.outcome == ProvisionOutcome.PROVISIONED
    assert report.is_up is False
    assert backend.snapshot()["wlan1mon"][0] == "monitor"


# ============================================================================
# Hints
# ============================================================================


@pytest.mark.asyncio
async def test_hints_take_precedence_over_scan():
    backend = _pi_backend(
        interfaces=[
            RadioInterface(name="wlan0", phy="phy0", is_up=True),
            RadioInterface(name="wlan1", mode=InterfaceMode.MANAGED, phy="phy1"),
            RadioInterface(name="wlan2", mode=InterfaceMode.MANAGED, phy="phy2"),
        ],
        phys=[
            PhysicalRadio(name="phy0"),
            PhysicalRadio(name="phy1", supports_monitor=True),
            PhysicalRadio(name="phy2", supports_monitor=True),
        ],
    )
    report = await _provisioner(backend, ProvisioningHints(interface="wlan2", phy="phy2")).run()

    assert report.source_interface == "wlan2"
    assert report.phy == "phy2"
    table = backend.snapshot()
    assert table["wlan1mon"][1] == "phy2"
    assert table["wlan1"] == ("managed", "phy1", None)


@pytest.mark.asyncio
async def test_phy_hint_keeps_other_radio_interfaces():
    backend = _pi_backend(
        interfaces=[
            RadioInterface(name="wlan0", phy="phy0", is_up=True),
            RadioInterface(name="wlan1", mode=InterfaceMode.MANAGED, phy="phy1", is_up=True),
        ],
        phys=[
            PhysicalRadio(name="phy0"),
            PhysicalRadio(name="phy1", supports_monitor=True),
            PhysicalRadio(name="phy2", supports_monitor=True),
        ],
    )
    report = await _provisioner(backend, ProvisioningHints(phy="phy2")).run()

    assert report.outcome == ProvisionOutcome.PROVISIONED
    assert report.strategy == "virtual"
    assert report.source_interface is None
    assert not _touches(backend, "wlan1")
    table = backend.snapshot()
    assert table["wlan1"] == ("managed", "phy1", True)
    assert table["wlan1mon"] == ("monitor", "phy2", True)


# ============================================================================
# Settle delay
# ============================================================================


@pytest.mark.asyncio
async def test_settle_delay_before_first_query(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr("monprov.infrastructure.provision.provisioner.asyncio.sleep", sleep)
    backend = _pi_backend()
    provisioner = MonitorProvisioner(backend, settle_delay_secs=2.0)

    await provisioner.run()

    sleep.assert_awaited_once_with(2.0)


@pytest.mark.asyncio
async def test_no_settle_delay_by_default(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr("monprov.infrastructure.provision.provisioner.asyncio.sleep", sleep)

    await _provisioner(_pi_backend()).run()

    sleep.assert_not_awaited()
