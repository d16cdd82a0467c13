"""Persisted service registry.

The ledger records which slot (and therefore which port block) each
service owns, in registration order:

    {
      "version": 1,
      "next_slot": 3,
      "released": [1],
      "services": [{"name": "a", "slot": 0, "created_at": "..."}, ...]
    }

Released slots are reused lowest-first before ``next_slot`` advances, so
deleting a service from the middle never shifts anyone else's ports.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from aipods.constants import REGISTRY_VERSION
from aipods.core.exceptions import ConfigurationError
from aipods.internal.rethrow import io_failure, rethrow


class ServiceRecord(BaseModel):
    name: str = Field(min_length=1)
    slot: int = Field(ge=0)
    created_at: str = ""

    model_config = {"extra": "forbid"}


class LedgerFile(BaseModel):
    """Schema of ``registry.json``.

    Every slot is owned by at most one service, and a slot is either in use,
    released, or at/above ``next_slot``. A file that breaks this would hand
    out a port block that is already taken, so it is rejected.
    """

    version: int
    next_slot: int = Field(ge=0)
    released: list[int] = Field(default_factory=list)
    services: list[ServiceRecord] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    @field_validator("version")
    @classmethod
    def supported_version(cls, version: int) -> int:
        if version != REGISTRY_VERSION:
            raise ValueError(f"Unsupported registry version {version} (expected {REGISTRY_VERSION})")
        return version

    @model_validator(mode="after")
    def disjoint_slots(self) -> Self:
        names = Counter(s.name for s in self.services)
        if dupes := sorted(n for n, c in names.items() if c > 1):
            raise ValueError(f"Duplicate services: {', '.join(dupes)}")

        slots = Counter(s.slot for s in self.services)
        if dupes := sorted(s for s, c in slots.items() if c > 1):
            raise ValueError(f"Slots owned by more than one service: {dupes}")

        if slots and self.next_slot <= max(slots):
            raise ValueError(f"next_slot {self.next_slot} must be above the highest used slot {max(slots)}")

        released = Counter(self.released)
        if dupes := sorted(s for s, c in released.items() if c > 1):
            raise ValueError(f"Slots released more than once: {dupes}")
        if in_use := sorted(set(released) & set(slots)):
            raise ValueError(f"Released slots still in use: {in_use}")
        if stray := sorted(s for s in released if not 0 <= s < self.next_slot):
            raise ValueError(f"Released slots outside 0..{self.next_slot - 1}: {stray}")
        return self


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    name: str
    slot: int
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())


@dataclass(slots=True)
class LedgerState:
    next_slot: int = 0
    released: list[int] = field(default_factory=list)
    entries: list[LedgerEntry] = field(default_factory=list)

    @classmethod
    def adopt(cls, recorded: list[tuple[str, int | None]]) -> tuple[LedgerState, list[str]]:
        """Seed a ledger from services that predate it.

        Each service keeps the slot it was built with when known and not
        already taken; the rest get the lowest free slots, in the given order.

        Returns:
            The state and the names whose slot was not taken from their
            record (unknown, or already owned by an earlier service).
        """
        slots: dict[str, int] = {}
        pending: list[str] = []
        for name, slot in recorded:
            if slot is not None and slot >= 0 and slot not in slots.values():
                slots[name] = slot
            else:
                pending.append(name)

        for name in pending:
            taken = set(slots.values())
            slots[name] = next(s for s in range(len(recorded) + 1) if s not in taken)

        next_slot = max(slots.values(), default=-1) + 1
        taken = set(slots.values())
        return cls(
            next_slot=next_slot,
            released=[s for s in range(next_slot) if s not in taken],
            entries=[
                LedgerEntry(name=name, slot=slot)
                for name, slot in sorted(slots.items(), key=lambda item: item[1])
            ],
        ), pending

    def find(self, name: str) -> LedgerEntry | None:
        return next((e for e in self.entries if e.name == name), None)

    def claim_slot(self) -> int:
        if self.released:
            slot = min(self.released)
            self.released.remove(slot)
            return slot
        slot = self.next_slot
        self.next_slot += 1
        return slot

    def add(self, entry: LedgerEntry) -> None:
        self.entries.append(entry)

    def remove(self, name: str) -> LedgerEntry | None:
        entry = self.find(name)
        if entry is None:
            return None
        self.entries.remove(entry)
        self.released.append(entry.slot)
        self.released.sort()
        return entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": REGISTRY_VERSION,
            "next_slot": self.next_slot,
            "released": list(self.released),
            "services": [asdict(e) for e in self.entries],
        }

    @classmethod
    def from_dict(cls, raw: Any) -> LedgerState:
        try:
            return cls.from_file(LedgerFile.model_validate(raw))
        except ValidationError as e:
            raise ConfigurationError(f"Malformed registry: {e}") from e

    @classmethod
    def from_file(cls, file: LedgerFile) -> LedgerState:
        return cls(
            next_slot=file.next_slot,
            released=sorted(file.released),
            entries=[LedgerEntry(**record.model_dump()) for record in file.services],
        )


@rethrow(OSError, io_failure)
def read_ledger(path: Path) -> LedgerState | None:
    """Load the ledger at ``path``; None when it has not been created yet.

    Raises:
        ConfigurationError: The file is not JSON, or does not describe a
            consistent ledger (unknown version, duplicate names or slots, ...).
    """
    if not path.is_file():
        return None
    try:
        file = LedgerFile.model_validate_json(path.read_text())
    except ValidationError as e:
        if any(err["type"] == "json_invalid" for err in e.errors()):
            raise ConfigurationError(f"Corrupt registry file {path}: {e}") from e
        raise ConfigurationError(f"Malformed registry {path}: {e}") from e
    return LedgerState.from_file(file)


@rethrow(OSError, io_failure)
def write_ledger(path: Path, state: LedgerState) -> None:
    """Replace the ledger atomically (write a sibling temp file, then rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(state.to_dict(), f, indent=2)
            f.write("\n")
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
