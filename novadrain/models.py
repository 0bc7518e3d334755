from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .config import NOVA_COMPUTE_BINARY

@dataclass
class Node:
    hostname: str
    binary:   str = NOVA_COMPUTE_BINARY
    # Cached view of the fabric's scheduling flag; written only by phases.status and phases.admission
    scheduling_enabled: bool = True

    @property
    def body_params(self) -> Dict[str, str]:
        return {"binary": self.binary, "host": self.hostname}


@dataclass(frozen=True)
class RemoteService:
    id:     Any
    host:   str
    binary: str
    status: str
    zone:   str = ""
    state:  str = ""
    disabled_reason: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RemoteService":
        return cls(
            id=d.get("id"),
            host=d.get("host", ""),
            binary=d.get("binary", ""),
            status=d.get("status", ""),
            zone=d.get("zone", ""),
            state=d.get("state", ""),
            disabled_reason=d.get("disabled_reason"),
        )


@dataclass(frozen=True)
class VM:
    id:      str
    host_id: str
    status:  str = ""
    created: Optional[str] = None
    updated: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "VM":
        return cls(
            id=d["id"],
            host_id=d.get("hostId", ""),
            status=d.get("status", ""),
            created=d.get("created"),
            updated=d.get("updated"),
        )


class MigrationStrategy(str, Enum):
    BLOCK = "block"
    PLAIN = "plain"


class MigrationState(str, Enum):
    PENDING = "pending"
    ISSUING = "issuing"
    ISSUED_BLOCK = "issued_block"
    ISSUED_PLAIN = "issued_plain"
    POLLING = "polling"
    MIGRATED = "migrated"
    ABANDONED = "abandoned"

    @property
    def terminal(self) -> bool:
        return self in (MigrationState.MIGRATED, MigrationState.ABANDONED)


class MigrationOutcome(str, Enum):
    PENDING = "pending"
    MIGRATED = "migrated"
    FAILED = "failed"


@dataclass
class MigrationTask:
    vm_id:            str
    original_host_id: str
    strategy:  MigrationStrategy = MigrationStrategy.BLOCK
    state:     MigrationState = MigrationState.PENDING
    polls:     int = 0
    error:     Optional[Exception] = None
    cancelled: bool = False

    @property
    def outcome(self) -> MigrationOutcome:
        if self.state is MigrationState.MIGRATED:
            return MigrationOutcome.MIGRATED
        if self.state is MigrationState.ABANDONED:
            return MigrationOutcome.FAILED
        return MigrationOutcome.PENDING

    def advance(self, state: MigrationState) -> None:
        if self.state.terminal:
            raise ValueError(f"VM {self.vm_id} is already {self.state.value}; cannot move to {state.value}")
        self.state = state


@dataclass
class DrainResult:
    all_migrated:  bool
    per_vm_status: Dict[str, MigrationOutcome] = field(default_factory=dict)
    timed_out:     bool = False

    def _with(self, outcome: MigrationOutcome) -> list[str]:
        return sorted(vm for vm, o in self.per_vm_status.items() if o is outcome)

    @property
    def migrated(self) -> list[str]:
        return self._with(MigrationOutcome.MIGRATED)

    @property
    def failed(self) -> list[str]:
        return self._with(MigrationOutcome.FAILED)

    @property
    def pending(self) -> list[str]:
        return self._with(MigrationOutcome.PENDING)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "all_migrated": self.all_migrated,
            "timed_out": self.timed_out,
            "per_vm_status": {vm: o.value for vm, o in self.per_vm_status.items()},
        }
