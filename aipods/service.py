"""Service and port-block model.

A service owns a block of ``stride`` ports starting at
``base_port + slot * stride``. Only the first three are named:

    +0  API / main service
    +1  Jupyter Lab
    +2  debugpy

Example:
    >>> block = PortBlock.for_slot(2)
    >>> block.api, block.jupyter, block.debug
    (8020, 8021, 8022)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from aipods.constants import (
    BASE_PORT,
    CONTAINER_PREFIX,
    IMAGE_NAMESPACE,
    MAX_PORT,
    PORT_STRIDE,
    SERVICE_NAME_MAX_LENGTH,
    SERVICE_NAME_PATTERN,
    PortRole,
)
from aipods.core.exceptions import InvalidNameError, PortRangeExhaustedError

_NAME_RE = re.compile(SERVICE_NAME_PATTERN)


def validate_name(name: str) -> str:
    """Return ``name`` if it is usable as a path segment and container suffix.

    Raises:
        InvalidNameError: When the name is empty, too long, contains a path
            separator or any character outside ``[a-z0-9._-]``.
    """
    if not name:
        raise InvalidNameError(name, "name must not be empty")
    if "/" in name or "\\" in name:
        raise InvalidNameError(name, "name must not contain path separators")
    if len(name) > SERVICE_NAME_MAX_LENGTH:
        raise InvalidNameError(name, f"name must be at most {SERVICE_NAME_MAX_LENGTH} characters")
    if not _NAME_RE.match(name):
        raise InvalidNameError(
            name, "use lowercase letters, digits, '-', '_' or '.', starting with a letter or digit"
        )
    return name


@dataclass(frozen=True, slots=True)
class PortBlock:
    """Ports reserved for one service: ``base`` through ``base + stride - 1``."""

    base: int
    stride: int = PORT_STRIDE

    @classmethod
    def for_slot(
        cls, slot: int, *, base_port: int = BASE_PORT, stride: int = PORT_STRIDE,
    ) -> PortBlock:
        base = base_port + slot * stride
        if base + stride - 1 > MAX_PORT:
            raise PortRangeExhaustedError(base)
        return cls(base=base, stride=stride)

    @property
    def api(self) -> int:
        return self.base

    @property
    def jupyter(self) -> int:
        return self.base + 1

    @property
    def debug(self) -> int:
        return self.base + 2

    @property
    def last(self) -> int:
        return self.base + self.stride - 1

    @property
    def triple(self) -> tuple[int, int, int]:
        return (self.api, self.jupyter, self.debug)

    def port(self, role: PortRole) -> int:
        match role:
            case PortRole.API:
                return self.api
            case PortRole.JUPYTER:
                return self.jupyter
            case PortRole.DEBUG:
                return self.debug

    def overlaps(self, other: PortBlock) -> bool:
        return self.base <= other.last and other.base <= self.last

    def to_dict(self) -> dict[str, int]:
        return {role.value: self.port(role) for role in PortRole}

    def __str__(self) -> str:
        return f"{self.base}-{self.last}"


@dataclass(frozen=True, slots=True)
class ServiceDescriptor:
    """A registered service and the port block allocated to it."""

    name: str
    slot: int
    ports: PortBlock

    @property
    def container_name(self) -> str:
        return f"{CONTAINER_PREFIX}{self.name}"

    @property
    def image(self) -> str:
        return f"{IMAGE_NAMESPACE}/{self.name}:latest"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "slot": self.slot, "ports": self.ports.to_dict()}
