"""
Protected-Authority Binding
===========================
The council only decides *who* the authority should be; this module applies
that decision to the thing actually being protected.

Two kinds of protected value are supported:
  - PayoutAddress  the address fees and rewards are paid to
  - AdminRole      an administrative role (grant to the new holder, then
                   revoke from the old one)

RecoveryHost owns one council and one authority and wires them together.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Any

import structlog

from guardian_council import (
    DEFAULT_APPROVAL_WINDOW,
    DEFAULT_LAST_HONEST_WINDOW,
    DEFAULT_MAX_EVENTS,
    GuardianCouncil,
    InvalidConfiguration,
    InvalidTarget,
    is_null_identity,
    utc_now,
)

log = structlog.get_logger()

CONTRACT_ADMIN_ROLE = "CONTRACT_ADMIN_ROLE"


# ==========================================
# PROTECTED VALUES
# ==========================================

class PayoutAddress:
    kind = "payout"

    def __init__(self, address: str):
        if is_null_identity(address):
            raise InvalidTarget("Payout address must be non-null.")
        self.address = address.strip()

    def current(self) -> str:
        return self.address

    def apply(self, new: str) -> str:
        if is_null_identity(new):
            raise InvalidTarget("Payout address must be non-null.")
        old, self.address = self.address, new.strip()
        return old

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "address": self.address}


class AdminRole:
    """
    A role with exactly one recoverable holder. Other members of the role
    (granted outside recovery) are left alone on rotation.
    """
    kind = "admin_role"

    def __init__(self, holder: str, role: str = CONTRACT_ADMIN_ROLE,
                 members: Optional[Iterable[str]] = None):
        if is_null_identity(holder):
            raise InvalidTarget("Role holder must be non-null.")
        self.role = role
        self.holder = holder.strip()
        self.members = set(members or ())
        self.members.add(self.holder)

    def has_role(self, identity: Optional[str]) -> bool:
        return identity in self.members

    def grant(self, identity: str):
        self.members.add(identity)
        log.info("role_granted", role=self.role, account=identity)

    def revoke(self, identity: str):
        self.members.discard(identity)
        log.info("role_revoked", role=self.role, account=identity)

    def current(self) -> str:
        return self.holder

    def apply(self, new: str) -> str:
        if is_null_identity(new):
            raise InvalidTarget("Role holder must be non-null.")
        new = new.strip()
        old = self.holder
        self.grant(new)
        if old != new:
            self.revoke(old)
        self.holder = new
        return old

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "role": self.role, "holder": self.holder,
                "members": sorted(self.members)}


def authority_from_dict(data: Dict[str, Any]):
    if data["kind"] == PayoutAddress.kind:
        return PayoutAddress(data["address"])
    if data["kind"] == AdminRole.kind:
        return AdminRole(data["holder"], role=data.get("role", CONTRACT_ADMIN_ROLE),
                         members=data.get("members"))
    raise InvalidConfiguration(f"Unknown authority kind '{data['kind']}'.")


def make_authority(kind: str, value: str):
    if kind == PayoutAddress.kind:
        return PayoutAddress(value)
    if kind == AdminRole.kind:
        return AdminRole(value)
    raise InvalidConfiguration(f"Unknown authority kind '{kind}'.")


# ==========================================
# RECOVERY HOST
# ==========================================

class RecoveryHost:
    """
    Binds a council to the authority it protects.

    on_rotated(old, new) is called after a successful recovery has been
    applied. With remove_old_authority=True the outgoing authority also
    loses its guardian seat, if it had one.
    """

    def __init__(
        self,
        authority,
        guardians: Iterable[str],
        threshold: int,
        approval_window: timedelta = DEFAULT_APPROVAL_WINDOW,
        last_honest_window: timedelta = DEFAULT_LAST_HONEST_WINDOW,
        on_rotated: Optional[Callable[[str, str], None]] = None,
        remove_old_authority: bool = False,
        clock: Callable[[], datetime] = utc_now,
        council_id: str = "default",
        max_events: int = DEFAULT_MAX_EVENTS,
        council: Optional[GuardianCouncil] = None,
    ):
        self.authority = authority
        self.on_rotated = on_rotated
        self.remove_old_authority = remove_old_authority
        if council is None:
            council = GuardianCouncil(
                guardians, threshold,
                approval_window=approval_window,
                last_honest_window=last_honest_window,
                authority_provider=self.current_protected_authority,
                clock=clock,
                council_id=council_id,
                max_events=max_events,
            )
        else:
            council.authority_provider = self.current_protected_authority
        self.council = council

    def current_protected_authority(self) -> str:
        return self.authority.current()

    # ------ pass-through operations ------

    def is_guardian(self, identity: Optional[str]) -> bool:
        return self.council.is_guardian(identity)

    def propose_recovery(self, caller: str, target: str):
        return self.council.propose(caller, target)

    def approve_recovery(self, caller: str) -> int:
        return self.council.approve(caller)

    def owner_reset(self, caller: str, guardians: Iterable[str], threshold: int):
        self.council.owner_reset(caller, guardians, threshold)

    def last_honest_reset(self, caller: str, guardians: Iterable[str], threshold: int):
        self.council.last_honest_reset(caller, guardians, threshold)

    def execute_recovery(self, caller: Optional[str] = None) -> str:
        """Run execute() on the council and apply its result to the authority."""
        target = self.council.execute(caller)
        old = self.authority.apply(target)
        self.council.record_event("authority_rotated", authority_kind=self.authority.kind,
                                  old=old, new=target)
        if self.remove_old_authority:
            self._drop_old_authority_seat(old)
        if self.on_rotated is not None:
            self.on_rotated(old, target)
        return target

    def _drop_old_authority_seat(self, old: str):
        council = self.council
        if not council.is_guardian(old):
            return
        if council.size == 1:
            council.record_event("old_authority_removal_skipped", guardian=old,
                                 reason="sole guardian")
            return
        clamped = council.release_seat(old)
        council.record_event("old_authority_removed", guardian=old,
                             threshold=council.threshold,
                             threshold_clamped=clamped, version=council.registry.version)

    # ------ views & persistence ------

    def snapshot(self) -> Dict[str, Any]:
        view = self.council.snapshot()
        view["authority"] = self.authority.to_dict()
        return view

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authority": self.authority.to_dict(),
            "remove_old_authority": self.remove_old_authority,
            "council": self.council.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], clock: Callable[[], datetime] = utc_now,
                  on_rotated: Optional[Callable[[str, str], None]] = None) -> "RecoveryHost":
        council = GuardianCouncil.from_dict(data["council"], clock=clock)
        return cls(
            authority_from_dict(data["authority"]),
            guardians=council.guardians,
            threshold=council.threshold,
            on_rotated=on_rotated,
            remove_old_authority=bool(data.get("remove_old_authority", False)),
            council=council,
        )

    @property
    def events(self) -> List[Dict[str, Any]]:
        return list(self.council.events)
