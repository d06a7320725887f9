"""
Tests for authority_binding.py

Run with:  pytest tests/test_authority_binding.py -v
"""

from datetime import timedelta

import pytest

from authority_binding import (
    CONTRACT_ADMIN_ROLE, AdminRole, PayoutAddress, RecoveryHost,
    authority_from_dict, make_authority,
)
from guardian_council import (
    InvalidConfiguration, InvalidTarget, Locked, ThresholdNotMet, Unauthorized,
    ZERO_ADDRESS,
)

GUARDIANS = ["G1", "G2", "G3", "G4", "G5"]


@pytest.fixture()
def payout_host():
    return RecoveryHost(PayoutAddress("0xTreasury"), GUARDIANS, 3)


@pytest.fixture()
def admin_host():
    return RecoveryHost(AdminRole("0xAdmin"), GUARDIANS, 3)


def reach_threshold(host, target):
    host.propose_recovery("G1", target)
    for g in ("G1", "G2", "G3"):
        host.approve_recovery(g)


# ==========================================
# Protected values
# ==========================================

class TestProtectedValues:
    def test_payout_apply_returns_previous(self):
        p = PayoutAddress("0xA")
        assert p.apply("0xB") == "0xA"
        assert p.current() == "0xB"

    def test_payout_rejects_zero_address(self):
        with pytest.raises(InvalidTarget):
            PayoutAddress(ZERO_ADDRESS)

    def test_admin_role_grants_then_revokes(self):
        role = AdminRole("0xOld", members=["0xOps"])
        assert role.apply("0xNew") == "0xOld"
        assert role.has_role("0xNew")
        assert not role.has_role("0xOld")
        assert role.has_role("0xOps")

    def test_admin_role_same_holder_keeps_role(self):
        role = AdminRole("0xA")
        role.apply("0xA")
        assert role.has_role("0xA")

    def test_from_dict(self):
        role = authority_from_dict(AdminRole("0xA").to_dict())
        assert role.role == CONTRACT_ADMIN_ROLE
        assert role.current() == "0xA"
        assert authority_from_dict({"kind": "payout", "address": "0xP"}).current() == "0xP"

    def test_unknown_kind(self):
        with pytest.raises(InvalidConfiguration):
            make_authority("vault", "0xA")


# ==========================================
# Recovery host
# ==========================================

class TestRecoveryHost:
    def test_execute_rotates_payout(self, payout_host):
        reach_threshold(payout_host, "0xRecovered")
        assert payout_host.execute_recovery("anyone") == "0xRecovered"
        assert payout_host.current_protected_authority() == "0xRecovered"
        assert payout_host.events[-1]["kind"] == "authority_rotated"

    def test_execute_rotates_admin_role(self, admin_host):
        reach_threshold(admin_host, "0xNewAdmin")
        admin_host.execute_recovery()
        assert admin_host.authority.has_role("0xNewAdmin")
        assert not admin_host.authority.has_role("0xAdmin")

    def test_failed_execute_leaves_authority(self, payout_host):
        payout_host.propose_recovery("G1", "0xRecovered")
        payout_host.approve_recovery("G1")
        with pytest.raises(ThresholdNotMet):
            payout_host.execute_recovery()
        assert payout_host.current_protected_authority() == "0xTreasury"

    def test_on_rotated_callback(self):
        seen = []
        host = RecoveryHost(PayoutAddress("0xA"), GUARDIANS, 3,
                            on_rotated=lambda old, new: seen.append((old, new)))
        reach_threshold(host, "0xB")
        host.execute_recovery()
        assert seen == [("0xA", "0xB")]

    def test_owner_reset_uses_current_authority(self, payout_host):
        payout_host.propose_recovery("G1", "0xEvil")
        for g in GUARDIANS:
            payout_host.approve_recovery(g)
        with pytest.raises(Locked):
            payout_host.execute_recovery()
        with pytest.raises(Unauthorized):
            payout_host.owner_reset("G1", ["H1"], 1)
        payout_host.owner_reset("0xTreasury", ["H1", "H2"], 1)
        assert not payout_host.council.locked

    def test_rotated_authority_becomes_owner(self, payout_host):
        reach_threshold(payout_host, "0xRecovered")
        payout_host.execute_recovery()
        with pytest.raises(Unauthorized):
            payout_host.owner_reset("0xTreasury", ["H1"], 1)
        payout_host.owner_reset("0xRecovered", ["H1"], 1)

    def test_remove_old_authority_hook(self):
        host = RecoveryHost(PayoutAddress("G1"), ["G1", "G2", "G3"], 2,
                            remove_old_authority=True)
        host.propose_recovery("G2", "0xNew")
        host.approve_recovery("G2")
        host.approve_recovery("G3")
        host.execute_recovery()
        assert not host.is_guardian("G1")
        assert host.council.threshold == 1
        kinds = [e["kind"] for e in host.events]
        assert kinds[-2:] == ["configuration_changed", "old_authority_removed"]
        assert host.council.state.value == "executed"

    def test_remove_old_authority_keeps_council_executable(self):
        host = RecoveryHost(PayoutAddress("G1"), ["G1", "G2", "G3", "G4"], 3,
                            remove_old_authority=True)
        host.propose_recovery("G2", "0xNew")
        for g in ("G2", "G3", "G4"):
            host.approve_recovery(g)
        host.execute_recovery()
        assert host.council.guardians == ["G2", "G3", "G4"]
        assert host.council.threshold == 2
        assert host.events[-1]["details"]["threshold_clamped"] is True

        # the next recovery reaches threshold without unanimity
        host.propose_recovery("G2", "0xNext")
        host.approve_recovery("G2")
        host.approve_recovery("G3")
        assert not host.council.locked
        assert host.execute_recovery() == "0xNext"

    def test_remove_old_authority_keeps_lower_threshold(self):
        host = RecoveryHost(PayoutAddress("G1"), ["G1", "G2", "G3", "G4", "G5"], 2,
                            remove_old_authority=True)
        host.propose_recovery("G2", "0xNew")
        host.approve_recovery("G2")
        host.approve_recovery("G3")
        host.execute_recovery()
        assert host.council.threshold == 2
        assert host.events[-1]["details"]["threshold_clamped"] is False

    def test_remove_old_authority_skips_non_guardian(self, payout_host):
        payout_host.remove_old_authority = True
        reach_threshold(payout_host, "0xRecovered")
        payout_host.execute_recovery()
        assert payout_host.council.guardians == GUARDIANS


# ==========================================
# Persistence
# ==========================================

class TestHostPersistence:
    def test_round_trip(self, admin_host):
        admin_host.propose_recovery("G1", "0xNext")
        admin_host.approve_recovery("G1")
        restored = RecoveryHost.from_dict(admin_host.to_dict())
        assert restored.snapshot() == admin_host.snapshot()
        assert restored.current_protected_authority() == "0xAdmin"
        restored.owner_reset("0xAdmin", ["H1"], 1)

    def test_windows_survive_round_trip(self):
        host = RecoveryHost(PayoutAddress("0xA"), ["G1", "G2"], 1,
                            approval_window=timedelta(hours=5),
                            last_honest_window=timedelta(hours=2))
        restored = RecoveryHost.from_dict(host.to_dict())
        assert restored.council.approval_window == timedelta(hours=5)
        assert restored.council.last_honest_window == timedelta(hours=2)

    def test_event_log_cap_survives_round_trip(self):
        host = RecoveryHost(PayoutAddress("0xA"), ["G1", "G2"], 1, max_events=5)
        for i in range(20):
            host.propose_recovery("G1", f"0xT{i}")
        assert len(host.events) == 5
        restored = RecoveryHost.from_dict(host.to_dict())
        restored.propose_recovery("G2", "0xLast")
        assert len(restored.events) == 5
        assert restored.events[-1]["details"]["proposed_authority"] == "0xLast"
