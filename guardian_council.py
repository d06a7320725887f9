"""
Guardian Council - Decentralized Recovery v1.0
==============================================
Threshold-based rotation of a single protected authority (a payout address
or an administrative role holder) without a trusted third party.

Pieces, leaf-first:
  - Council Registry     (guardian membership + threshold)
  - Compromise Detector  (approval count -> clear / warning / locked)
  - Proposal Lifecycle   (single-slot propose / approve / execute)
  - Reset Mechanism      (owner reset, last-honest-guardian reset)
  - Council Arena        (many councils side by side, keyed by id)

Unanimous approval is treated as anomalous: if every guardian signs off, the
council locks and refuses to execute until the protected authority resets
it. When all but one guardian have approved, the remaining one gets a short
window to re-key the council on its own. That last rule is a heuristic for a
single-compromise-event threat model, not a proof that the holdout is honest.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Any
from enum import Enum

import structlog

log = structlog.get_logger()


# ==========================================
# CONSTANTS
# ==========================================

MAX_GUARDIANS = 7
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

DEFAULT_APPROVAL_WINDOW    = timedelta(hours=72)   # proposals expire after 3 days
DEFAULT_LAST_HONEST_WINDOW = timedelta(hours=36)   # holdout gets half of that

DEFAULT_MAX_EVENTS = 256   # oldest entries fall off the log past this


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_null_identity(identity: Optional[str]) -> bool:
    if identity is None:
        return True
    value = str(identity).strip()
    return value == "" or value.lower() == ZERO_ADDRESS


# ==========================================
# ERRORS
# ==========================================

class CouncilError(Exception):
    """Base error. `code` is stable and safe to hand to operators."""

    code = "council_error"
    http_status = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"error": self.code, "detail": self.message}
        if self.details:
            d["context"] = {k: str(v) for k, v in self.details.items()}
        return d


class InvalidConfiguration(CouncilError):
    code = "invalid_configuration"
    http_status = 422


class InvalidTarget(CouncilError):
    code = "invalid_target"
    http_status = 422


class Unauthorized(CouncilError):
    code = "unauthorized"
    http_status = 403


class NotLastHonest(Unauthorized):
    code = "not_last_honest"


class NoActiveProposal(CouncilError):
    code = "no_active_proposal"
    http_status = 409


class AlreadyApproved(CouncilError):
    code = "already_approved"
    http_status = 409


class AlreadyFinal(CouncilError):
    code = "already_final"
    http_status = 409


class Locked(AlreadyFinal):
    """Unanimous approval tripped the compromise lock. Only an owner reset clears it."""
    code = "locked"
    http_status = 423


class Expired(CouncilError):
    code = "expired"
    http_status = 410


class WindowExpired(Expired):
    code = "window_expired"


class ThresholdNotMet(CouncilError):
    code = "threshold_not_met"
    http_status = 409


class CouncilNotFound(CouncilError):
    code = "council_not_found"
    http_status = 404


class DuplicateCouncil(CouncilError):
    code = "duplicate_council"
    http_status = 409


# ==========================================
# COUNCIL REGISTRY
# ==========================================

def validate_configuration(guardians: Iterable[str], threshold: int) -> List[str]:
    """
    Check a guardian set + threshold and return the normalised member list.
    Raises InvalidConfiguration on anything the registry must never hold.
    """
    members = [str(g).strip() if g is not None else None for g in guardians]
    if not members:
        raise InvalidConfiguration("A council needs at least one guardian.")
    if len(members) > MAX_GUARDIANS:
        raise InvalidConfiguration(
            f"A council holds at most {MAX_GUARDIANS} guardians, got {len(members)}.",
            size=len(members),
        )
    if any(is_null_identity(m) for m in members):
        raise InvalidConfiguration("Guardian identities must be non-null.")
    if len(set(members)) != len(members):
        raise InvalidConfiguration("Guardian identities must be distinct.")
    if isinstance(threshold, bool) or not isinstance(threshold, int):
        raise InvalidConfiguration("threshold must be an integer.", threshold=threshold)
    if not 1 <= threshold <= len(members):
        raise InvalidConfiguration(
            f"threshold must be between 1 and {len(members)}, got {threshold}.",
            threshold=threshold,
        )
    return members


def _check_max_events(max_events: int):
    if isinstance(max_events, bool) or not isinstance(max_events, int) or max_events < 1:
        raise InvalidConfiguration("max_events must be a positive integer.", max_events=max_events)


class CouncilRegistry:
    """
    Ordered guardian set plus threshold. The list keeps seat order, the set
    answers membership in O(1). `version` bumps on every change.
    """

    def __init__(self, guardians: Iterable[str], threshold: int, version: int = 1):
        self._members = validate_configuration(guardians, threshold)
        self._index = set(self._members)
        self.threshold = threshold
        self.version = version

    @property
    def members(self) -> List[str]:
        return list(self._members)

    @property
    def size(self) -> int:
        return len(self._members)

    def is_member(self, identity: Optional[str]) -> bool:
        if is_null_identity(identity):
            return False
        return str(identity).strip() in self._index

    def add_member(self, identity: str) -> None:
        validate_configuration(self._members + [identity], self.threshold)
        self._members.append(str(identity).strip())
        self._index.add(self._members[-1])
        self.version += 1

    def set_member(self, old: str, new: str) -> None:
        """Swap one seat's holder in place, keeping its position."""
        if not self.is_member(old):
            raise InvalidConfiguration(f"'{old}' is not a guardian.", guardian=old)
        old = str(old).strip()
        candidate = [new if m == old else m for m in self._members]
        self._members = validate_configuration(candidate, self.threshold)
        self._index = set(self._members)
        self.version += 1

    def remove_member(self, identity: str) -> bool:
        """
        Drop a guardian. Returns True when the threshold had to be clamped
        down to the new size.
        """
        if not self.is_member(identity):
            raise InvalidConfiguration(f"'{identity}' is not a guardian.", guardian=identity)
        if self.size == 1:
            raise InvalidConfiguration("Cannot remove the last guardian; use a reset instead.")
        identity = str(identity).strip()
        self._members.remove(identity)
        self._index.discard(identity)
        clamped = self.threshold > self.size
        if clamped:
            self.threshold = self.size
        self.version += 1
        return clamped

    def set_threshold(self, threshold: int) -> None:
        validate_configuration(self._members, threshold)
        self.threshold = threshold
        self.version += 1

    def replace(self, guardians: Iterable[str], threshold: int) -> None:
        members = validate_configuration(guardians, threshold)
        self._members = members
        self._index = set(members)
        self.threshold = threshold
        self.version += 1


# ==========================================
# COMPROMISE DETECTOR
# ==========================================

class CompromiseLevel(Enum):
    CLEAR   = "clear"
    WARNING = "warning"   # all but one guardian approved
    LOCKED  = "locked"    # unanimous


def evaluate_compromise(approvals: int, size: int) -> CompromiseLevel:
    """Classify an approval count. The warning trigger is size-1, never threshold-1."""
    if approvals >= size:
        return CompromiseLevel.LOCKED
    if approvals == size - 1:
        return CompromiseLevel.WARNING
    return CompromiseLevel.CLEAR


# ==========================================
# PROPOSAL
# ==========================================

class ProposalState(Enum):
    NONE     = "none"
    PROPOSED = "proposed"
    EXECUTED = "executed"
    EXPIRED  = "expired"
    LOCKED   = "locked"


@dataclass
class RecoveryProposal:
    proposed_authority: str
    proposer: str
    created_at: datetime
    deadline: Optional[datetime]
    approved: List[str] = field(default_factory=list)   # approval order
    executed: bool = False

    @property
    def approvals(self) -> int:
        return len(self.approved)

    def has_approved(self, guardian: str) -> bool:
        return guardian in self.approved

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposed_authority": self.proposed_authority,
            "proposer": self.proposer,
            "created_at": self.created_at.isoformat(),
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "approved": list(self.approved),
            "approvals": self.approvals,
            "executed": self.executed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecoveryProposal":
        return cls(
            proposed_authority=data["proposed_authority"],
            proposer=data["proposer"],
            created_at=datetime.fromisoformat(data["created_at"]),
            deadline=datetime.fromisoformat(data["deadline"]) if data.get("deadline") else None,
            approved=list(data.get("approved", [])),
            executed=bool(data.get("executed", False)),
        )


# ==========================================
# THE COUNCIL
# ==========================================

class GuardianCouncil:
    """
    One council guarding one protected authority.

    Every operation runs all of its precondition checks before touching
    state, so a rejected call leaves the council exactly as it was.
    """

    def __init__(
        self,
        guardians: Iterable[str],
        threshold: int,
        approval_window: timedelta = DEFAULT_APPROVAL_WINDOW,
        last_honest_window: timedelta = DEFAULT_LAST_HONEST_WINDOW,
        authority_provider: Optional[Callable[[], Optional[str]]] = None,
        clock: Callable[[], datetime] = utc_now,
        council_id: str = "default",
        max_events: int = DEFAULT_MAX_EVENTS,
    ):
        for name, window in (("approval_window", approval_window),
                             ("last_honest_window", last_honest_window)):
            if not isinstance(window, timedelta) or window <= timedelta(0):
                raise InvalidConfiguration(f"{name} must be a positive duration.", window=window)
        _check_max_events(max_events)

        self.council_id = council_id
        self.registry = CouncilRegistry(guardians, threshold)
        self.approval_window = approval_window
        self.last_honest_window = last_honest_window
        self.authority_provider = authority_provider or (lambda: None)
        self.clock = clock

        self.proposal: Optional[RecoveryProposal] = None
        self.locked = False
        self.last_honest_guardian: Optional[str] = None
        self.last_honest_deadline: Optional[datetime] = None
        self.events: deque = deque(maxlen=max_events)

        self.record_event("council_initialized", guardians=self.registry.members,
                          threshold=threshold, version=self.registry.version)
        self._warn_if_unanimity_required()

    # ------ read views ------

    @property
    def guardians(self) -> List[str]:
        return self.registry.members

    @property
    def threshold(self) -> int:
        return self.registry.threshold

    @property
    def size(self) -> int:
        return self.registry.size

    def is_guardian(self, identity: Optional[str]) -> bool:
        return self.registry.is_member(identity)

    @property
    def state(self) -> ProposalState:
        p = self.proposal
        if p is None:
            return ProposalState.NONE
        if p.executed:
            return ProposalState.EXECUTED
        if self.locked:
            return ProposalState.LOCKED
        if self._past(p.deadline):
            return ProposalState.EXPIRED
        return ProposalState.PROPOSED

    @property
    def active_proposal(self) -> Optional[RecoveryProposal]:
        """The live proposal, or None if there is none or it is executed/expired/locked."""
        return self.proposal if self.state == ProposalState.PROPOSED else None

    @property
    def approvals(self) -> int:
        return self.proposal.approvals if self.proposal else 0

    def snapshot(self) -> Dict[str, Any]:
        """Read view for hosts and operators."""
        return {
            "council_id": self.council_id,
            "guardians": self.guardians,
            "threshold": self.threshold,
            "version": self.registry.version,
            "state": self.state.value,
            "proposal": self.proposal.to_dict() if self.proposal else None,
            "locked": self.locked,
            "last_honest_guardian": self.last_honest_guardian,
            "last_honest_deadline": (
                self.last_honest_deadline.isoformat() if self.last_honest_deadline else None
            ),
        }

    # ------ helpers ------

    def _past(self, moment: Optional[datetime]) -> bool:
        return moment is None or self.clock() > moment

    def record_event(self, kind: str, **details):
        self.events.append({"kind": kind, "at": self.clock().isoformat(), "details": details})
        log.info(kind, council_id=self.council_id, **details)

    def _reject(self, error: CouncilError, operation: str, caller: Optional[str]):
        log.info("operation_rejected", council_id=self.council_id, operation=operation,
                 caller=caller, error=error.code)
        raise error

    def _warn_if_unanimity_required(self):
        if self.threshold == self.size:
            log.warning("threshold_requires_unanimity", council_id=self.council_id,
                        threshold=self.threshold, size=self.size)

    def _clear_compromise_state(self):
        self.locked = False
        self.last_honest_guardian = None
        self.last_honest_deadline = None

    def _evaluate_compromise(self):
        p = self.proposal
        level = evaluate_compromise(p.approvals, self.size)
        if level is CompromiseLevel.LOCKED:
            self.locked = True
            self.last_honest_guardian = None
            self.last_honest_deadline = None
            self.record_event("compromise_locked", approvals=p.approvals, size=self.size)
            log.warning("compromise_lock_engaged", council_id=self.council_id,
                        proposed_authority=p.proposed_authority)
        elif level is CompromiseLevel.WARNING:
            holdouts = [g for g in self.guardians if not p.has_approved(g)]
            self.last_honest_guardian = holdouts[0]
            self.last_honest_deadline = self.clock() + self.last_honest_window
            self.record_event("last_honest_window_opened", guardian=self.last_honest_guardian,
                              deadline=self.last_honest_deadline.isoformat())
        else:
            self.last_honest_guardian = None
            self.last_honest_deadline = None

    def _require_owner(self, caller: Optional[str], operation: str):
        owner = self.authority_provider()
        if is_null_identity(owner) or is_null_identity(caller) or str(caller).strip() != owner:
            self._reject(Unauthorized(f"Only the protected authority may {operation}."),
                         operation, caller)

    # ------ proposal lifecycle ------

    def propose(self, caller: str, proposed_authority: str) -> RecoveryProposal:
        """Open a fresh proposal, discarding whatever was pending."""
        if not self.is_guardian(caller):
            self._reject(Unauthorized(f"'{caller}' is not a guardian."), "propose", caller)
        if is_null_identity(proposed_authority):
            self._reject(InvalidTarget("Proposed authority must be non-null."), "propose", caller)
        if self.locked:
            self._reject(Locked("Council is locked; an owner reset is required."), "propose", caller)

        previous = self.active_proposal
        if previous is not None:
            self.record_event("recovery_superseded", proposed_authority=previous.proposed_authority,
                              approvals=previous.approvals, by=caller)

        now = self.clock()
        self.proposal = RecoveryProposal(
            proposed_authority=str(proposed_authority).strip(),
            proposer=str(caller).strip(),
            created_at=now,
            deadline=now + self.approval_window,
        )
        self._clear_compromise_state()
        self.record_event("recovery_proposed", proposer=caller,
                          proposed_authority=self.proposal.proposed_authority,
                          deadline=self.proposal.deadline.isoformat())
        self._evaluate_compromise()
        return self.proposal

    def approve(self, caller: str) -> int:
        """Attest to the pending proposal. Returns the new approval count."""
        if not self.is_guardian(caller):
            self._reject(Unauthorized(f"'{caller}' is not a guardian."), "approve", caller)
        p = self.proposal
        if p is None:
            self._reject(NoActiveProposal("There is no recovery proposal."), "approve", caller)
        if self.locked:
            self._reject(Locked("Council is locked; an owner reset is required."), "approve", caller)
        if p.executed:
            self._reject(AlreadyFinal("Proposal was already executed."), "approve", caller)
        if self._past(p.deadline):
            self._reject(Expired("Proposal approval window has closed.",
                                 deadline=p.deadline), "approve", caller)
        caller = str(caller).strip()
        if p.has_approved(caller):
            self._reject(AlreadyApproved(f"'{caller}' already approved."), "approve", caller)

        p.approved.append(caller)
        self.record_event("recovery_approved", guardian=caller, approvals=p.approvals,
                          threshold=self.threshold, size=self.size)
        self._evaluate_compromise()
        return p.approvals

    def execute(self, caller: Optional[str] = None) -> str:
        """
        Finalise the proposal and return the new authority. Anyone may call;
        applying the result is the host's job.
        """
        p = self.proposal
        if p is None:
            self._reject(NoActiveProposal("There is no recovery proposal."), "execute", caller)
        if p.executed:
            self._reject(AlreadyFinal("Proposal was already executed."), "execute", caller)
        if self.locked:
            self._reject(Locked("Council is locked; an owner reset is required."), "execute", caller)
        if self._past(p.deadline):
            self._reject(Expired("Proposal approval window has closed.",
                                 deadline=p.deadline), "execute", caller)
        if p.approvals < self.threshold:
            self._reject(ThresholdNotMet(
                f"{p.approvals} of {self.threshold} required approvals.",
                approvals=p.approvals, threshold=self.threshold), "execute", caller)

        target = p.proposed_authority
        approvals = p.approvals
        p.executed = True
        p.approved = []
        p.deadline = None
        self._clear_compromise_state()
        self.record_event("recovery_executed", caller=caller, proposed_authority=target,
                          approvals=approvals)
        return target

    # ------ membership (owner only) ------

    def _before_membership_change(self, caller: Optional[str], operation: str):
        self._require_owner(caller, operation)
        if self.locked:
            self._reject(Locked("Council is locked; use an owner reset."), operation, caller)

    def _after_membership_change(self, **details):
        # the approval set no longer matches the seats
        if self.active_proposal is not None:
            self.record_event("recovery_superseded",
                              proposed_authority=self.proposal.proposed_authority,
                              approvals=self.proposal.approvals, by="configuration_change")
        if self.proposal is not None and not self.proposal.executed:
            self.proposal = None
        self._clear_compromise_state()
        self.record_event("configuration_changed", guardians=self.guardians,
                          threshold=self.threshold, version=self.registry.version, **details)
        self._warn_if_unanimity_required()

    def add_guardian(self, caller: str, guardian: str):
        self._before_membership_change(caller, "add a guardian")
        self.registry.add_member(guardian)
        self._after_membership_change(added=guardian)

    def set_guardian(self, caller: str, old: str, new: str):
        self._before_membership_change(caller, "replace a guardian")
        self.registry.set_member(old, new)
        self._after_membership_change(replaced=old, added=new)

    def remove_guardian(self, caller: str, guardian: str) -> bool:
        self._before_membership_change(caller, "remove a guardian")
        clamped = self.registry.remove_member(guardian)
        self._after_membership_change(removed=guardian, threshold_clamped=clamped)
        return clamped

    def release_seat(self, guardian: str) -> bool:
        """
        Drop the seat of an authority that was just rotated out. Not an owner
        operation: the host calls it after a successful execute(). The
        threshold is kept below the new size, otherwise every recovery that
        reaches it would be unanimous and lock. Returns True if it was lowered.
        """
        if self.size == 1:
            raise InvalidConfiguration("Cannot remove the last guardian; use a reset instead.")
        clamped = self.registry.remove_member(guardian)
        if self.size > 1 and self.threshold >= self.size:
            self.registry.set_threshold(self.size - 1)
            clamped = True
        self._after_membership_change(removed=guardian, threshold_clamped=clamped)
        return clamped

    def set_threshold(self, caller: str, threshold: int):
        self._before_membership_change(caller, "change the threshold")
        self.registry.set_threshold(threshold)
        self._after_membership_change()

    # ------ resets ------

    def _reset(self, kind: str, caller: str, guardians: Iterable[str], threshold: int):
        self.registry.replace(guardians, threshold)
        self.proposal = None
        self._clear_compromise_state()
        self.record_event(kind, caller=caller, guardians=self.guardians,
                          threshold=self.threshold, version=self.registry.version)
        self._warn_if_unanimity_required()

    def owner_reset(self, caller: str, guardians: Iterable[str], threshold: int):
        """Replace the council wholesale. Valid at any time; the only way out of a lock."""
        self._require_owner(caller, "reset the council")
        guardians = list(guardians)
        validate_configuration(guardians, threshold)
        self._reset("owner_reset", caller, guardians, threshold)

    def last_honest_reset(self, caller: str, guardians: Iterable[str], threshold: int):
        """Replace the council on behalf of the sole holdout, inside its window."""
        if self.last_honest_guardian is None or is_null_identity(caller) \
                or str(caller).strip() != self.last_honest_guardian:
            self._reject(NotLastHonest(f"'{caller}' is not the last honest guardian."),
                         "last_honest_reset", caller)
        if self._past(self.last_honest_deadline):
            self._reject(WindowExpired("Last-honest window has closed.",
                                       deadline=self.last_honest_deadline),
                         "last_honest_reset", caller)
        guardians = list(guardians)
        validate_configuration(guardians, threshold)
        self._reset("last_honest_reset", caller, guardians, threshold)

    # ------ persistence ------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "council_id": self.council_id,
            "guardians": self.guardians,
            "threshold": self.threshold,
            "version": self.registry.version,
            "approval_window_seconds": self.approval_window.total_seconds(),
            "last_honest_window_seconds": self.last_honest_window.total_seconds(),
            "proposal": self.proposal.to_dict() if self.proposal else None,
            "locked": self.locked,
            "last_honest_guardian": self.last_honest_guardian,
            "last_honest_deadline": (
                self.last_honest_deadline.isoformat() if self.last_honest_deadline else None
            ),
            "max_events": self.events.maxlen,
            "events": list(self.events),
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        authority_provider: Optional[Callable[[], Optional[str]]] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> "GuardianCouncil":
        council = cls.__new__(cls)
        council.council_id = data["council_id"]
        council.registry = CouncilRegistry(data["guardians"], data["threshold"],
                                           version=data.get("version", 1))
        council.approval_window = timedelta(seconds=data["approval_window_seconds"])
        council.last_honest_window = timedelta(seconds=data["last_honest_window_seconds"])
        council.authority_provider = authority_provider or (lambda: None)
        council.clock = clock
        council.proposal = (
            RecoveryProposal.from_dict(data["proposal"]) if data.get("proposal") else None
        )
        council.locked = bool(data.get("locked", False))
        council.last_honest_guardian = data.get("last_honest_guardian")
        deadline = data.get("last_honest_deadline")
        council.last_honest_deadline = datetime.fromisoformat(deadline) if deadline else None
        max_events = data.get("max_events", DEFAULT_MAX_EVENTS)
        _check_max_events(max_events)
        council.events = deque(data.get("events", []), maxlen=max_events)
        return council


# ==========================================
# COUNCIL ARENA
# ==========================================

class CouncilArena:
    """Independent councils side by side, keyed by council id."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self._councils: Dict[str, GuardianCouncil] = {}

    def create(
        self,
        council_id: str,
        guardians: Iterable[str],
        threshold: int,
        authority_provider: Optional[Callable[[], Optional[str]]] = None,
        approval_window: timedelta = DEFAULT_APPROVAL_WINDOW,
        last_honest_window: timedelta = DEFAULT_LAST_HONEST_WINDOW,
    ) -> GuardianCouncil:
        if council_id in self._councils:
            raise DuplicateCouncil(f"Council '{council_id}' already exists.")
        council = GuardianCouncil(
            guardians, threshold,
            approval_window=approval_window,
            last_honest_window=last_honest_window,
            authority_provider=authority_provider,
            clock=self.clock,
            council_id=council_id,
        )
        self._councils[council_id] = council
        return council

    def get(self, council_id: str) -> GuardianCouncil:
        try:
            return self._councils[council_id]
        except KeyError:
            raise CouncilNotFound(f"Council '{council_id}' does not exist.") from None

    def drop(self, council_id: str) -> None:
        self.get(council_id)
        del self._councils[council_id]
        log.info("council_dropped", council_id=council_id)

    def ids(self) -> List[str]:
        return sorted(self._councils)

    def __contains__(self, council_id: str) -> bool:
        return council_id in self._councils

    def __len__(self) -> int:
        return len(self._councils)


# ==========================================
# DEMO
# ==========================================

if __name__ == "__main__":
    print("\n" + "="*60)
    print("  GUARDIAN COUNCIL - RECOVERY DEMO")
    print("="*60)

    owner = {"authority": "0xOwner"}
    council = GuardianCouncil(
        guardians=["G1", "G2", "G3", "G4", "G5"],
        threshold=3,
        authority_provider=lambda: owner["authority"],
    )

    council.propose("G1", "0xNewOwner")
    for g in ("G2", "G3", "G4"):
        council.approve(g)
    owner["authority"] = council.execute("anyone")
    print(f"\n[ROTATED] authority -> {owner['authority']}")

    council.propose("G1", "0xAttacker")
    for g in ("G1", "G2", "G3", "G4"):
        council.approve(g)
    print(f"[WARNING] last honest guardian: {council.last_honest_guardian}")
    council.approve("G5")
    print(f"[LOCKED] locked={council.locked}")
    try:
        council.execute("anyone")
    except Locked as e:
        print(f"[REFUSED] {e.code}: {e.message}")

    council.owner_reset(owner["authority"], ["H1", "H2", "H3"], 2)
    print(f"[RESET] guardians={council.guardians} threshold={council.threshold}")
    print("\n[DEMO COMPLETE]")
