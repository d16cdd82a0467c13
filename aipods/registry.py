"""Service registry and port allocator.

A new service gets the port block for the next free slot:

    base = ports.base + slot * ports.stride

How the slot is found depends on the allocation strategy:

- ``scan``: the service root's directory listing is the whole registry.
  The slot is the number of services present, and ``list()`` re-derives
  every block from its position in the sorted listing. Deleting a service
  from the middle shifts the blocks reported for everything after it, and
  the next registration reuses a block that is already taken.
- ``ledger``: slots are recorded in ``.aipods/registry.json``. Released
  slots are reused lowest-first, and ports never shift.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

from loguru import logger

from aipods.config import AllocationStrategy, ProjectConfig
from aipods.constants import BASE_PORT, PORT_STRIDE
from aipods.core.exceptions import AlreadyExistsError, ServiceNotFoundError
from aipods.layout import ProjectLayout
from aipods.ledger import LedgerEntry, LedgerState, read_ledger, write_ledger
from aipods.service import PortBlock, ServiceDescriptor, validate_name
from aipods.skeleton import remove_skeleton, write_dockerfile, write_skeleton
from aipods.templates import ServiceArtifacts

log = logger.bind(component="registry")

_API_LABEL = re.compile(r'port\.api="(\d+)"')


def _names_on_disk(layout: ProjectLayout) -> list[str]:
    if not layout.services.is_dir():
        return []
    return sorted(
        p.name for p in layout.services.iterdir()
        if p.is_dir() and not p.name.startswith(".")
    )


def _recorded_slot(layout: ProjectLayout, name: str, base: int, stride: int) -> int | None:
    """Slot a service was built with, from its Dockerfile's port.api label."""
    dockerfile = layout.build_dir(name) / "Dockerfile"
    try:
        match = _API_LABEL.search(dockerfile.read_text())
    except OSError:
        return None
    if match is None:
        return None
    offset = int(match.group(1)) - base
    if offset < 0 or offset % stride:
        return None
    return offset // stride


class Allocator(Protocol):
    """Decides which slot a service gets and remembers it."""

    def contains(self, name: str) -> bool: ...

    def claim(self) -> int:
        """Slot for the next registration."""
        ...

    def commit(self, service: ServiceDescriptor) -> None: ...

    def slots(self) -> list[tuple[str, int]]:
        """(name, slot) for every registered service, in listing order."""
        ...

    def release(self, name: str) -> None: ...


class ScanAllocator:
    def __init__(self, layout: ProjectLayout) -> None:
        self._layout = layout

    def contains(self, name: str) -> bool:
        return self._layout.service_dir(name).is_dir()

    def claim(self) -> int:
        return len(_names_on_disk(self._layout))

    def commit(self, service: ServiceDescriptor) -> None:
        pass

    def slots(self) -> list[tuple[str, int]]:
        return [(name, i) for i, name in enumerate(_names_on_disk(self._layout))]

    def release(self, name: str) -> None:
        pass


class LedgerAllocator:
    def __init__(self, layout: ProjectLayout, *, base: int = BASE_PORT, stride: int = PORT_STRIDE) -> None:
        self._layout = layout
        self._base = base
        self._stride = stride
        self._state: LedgerState | None = None

    @property
    def state(self) -> LedgerState:
        if self._state is None:
            state = read_ledger(self._layout.registry_file)
            if state is None:
                state = self._adopt()
            self._state = state
        return self._state

    def _adopt(self) -> LedgerState:
        existing = _names_on_disk(self._layout)
        recorded = {
            name: _recorded_slot(self._layout, name, self._base, self._stride)
            for name in existing
        }
        state, reassigned = LedgerState.adopt(list(recorded.items()))
        if existing:
            log.info("Adopting {n} existing services into the registry", n=len(existing))
        for name in reassigned:
            slot = state.find(name).slot
            if recorded[name] is None:
                reason = "has no readable port.api label in its Dockerfile"
            else:
                reason = "shares a port block with another service"
            log.warning(
                "{service} {reason}; assigned slot {slot}, run: aipods refresh {service}",
                service=name, reason=reason, slot=slot,
            )
        return state

    def contains(self, name: str) -> bool:
        return self.state.find(name) is not None

    def claim(self) -> int:
        return self.state.claim_slot()

    def commit(self, service: ServiceDescriptor) -> None:
        self.state.add(LedgerEntry(name=service.name, slot=service.slot))
        write_ledger(self._layout.registry_file, self.state)

    def slots(self) -> list[tuple[str, int]]:
        return [(e.name, e.slot) for e in self.state.entries]

    def release(self, name: str) -> None:
        self.state.remove(name)
        write_ledger(self._layout.registry_file, self.state)


def make_allocator(config: ProjectConfig, layout: ProjectLayout) -> Allocator:
    match config.allocation.strategy:
        case "scan":
            return ScanAllocator(layout)
        case "ledger":
            return LedgerAllocator(layout, base=config.ports.base, stride=config.ports.stride)


class ServiceRegistry:
    """Registers services, allocating a port block and writing a skeleton.

    Example:
        >>> registry = ServiceRegistry(ProjectLayout.from_config(root, config), config)
        >>> registry.register("rag-test").ports.triple
        (8000, 8001, 8002)
    """

    def __init__(self, layout: ProjectLayout, config: ProjectConfig) -> None:
        self.layout = layout
        self.config = config
        self.strategy: AllocationStrategy = config.allocation.strategy
        self._allocator = make_allocator(config, layout)

    def _descriptor(self, name: str, slot: int) -> ServiceDescriptor:
        ports = PortBlock.for_slot(
            slot, base_port=self.config.ports.base, stride=self.config.ports.stride,
        )
        return ServiceDescriptor(name=name, slot=slot, ports=ports)

    def exists(self, name: str) -> bool:
        return self.layout.service_dir(name).is_dir() or self._allocator.contains(name)

    def register(self, name: str) -> ServiceDescriptor:
        """Allocate a port block for ``name`` and write its skeleton.

        Raises:
            InvalidNameError: ``name`` is empty or not a safe path segment.
            AlreadyExistsError: the service directory or record already exists.
            PortRangeExhaustedError: the next block would pass port 65535.
            IOFailureError: a directory or file could not be written.
        """
        validate_name(name)
        if self.exists(name):
            raise AlreadyExistsError(name)

        service = self._descriptor(name, self._allocator.claim())
        log.info(
            "Registering {service} on ports {ports}",
            service=name, ports=str(service.ports), strategy=self.strategy,
        )

        write_skeleton(self.layout, ServiceArtifacts.from_config(service, self.config))
        self._allocator.commit(service)
        return service

    def get(self, name: str) -> ServiceDescriptor:
        for service in self.list():
            if service.name == name:
                return service
        raise ServiceNotFoundError(name, [s.name for s in self.list()])

    def require(self, name: str) -> ServiceDescriptor:
        """Like :meth:`get`, but also validates ``name`` first."""
        validate_name(name)
        return self.get(name)

    def remove(self, name: str, *, purge: bool = False) -> ServiceDescriptor:
        """Unregister ``name``; with ``purge`` also delete its directories.

        With the scan strategy the directory *is* the record, so removal
        always deletes it.
        """
        service = self.require(name)
        if purge or self.strategy == "scan":
            remove_skeleton(self.layout, name)
        self._allocator.release(name)
        log.info("Removed {service} (ports {ports} released)", service=name, ports=str(service.ports))
        return service

    def refresh(self, name: str) -> Path:
        """Rewrite a service's Dockerfile with the ports it is registered on."""
        service = self.require(name)
        return write_dockerfile(self.layout, ServiceArtifacts.from_config(service, self.config))

    def list(self) -> list[ServiceDescriptor]:
        """Registered services with their port blocks, in listing order."""
        return [self._descriptor(name, slot) for name, slot in self._allocator.slots()]
