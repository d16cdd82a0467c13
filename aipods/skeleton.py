"""Writes (and removes) the on-disk skeleton of a service.

Writes are not transactional: if a later write fails, earlier directories
and files stay where they are and the caller gets an IOFailureError.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from loguru import logger

from aipods.internal.rethrow import io_failure, rethrow
from aipods.layout import ProjectLayout
from aipods.templates import ServiceArtifacts

log = logger.bind(component="skeleton")


@rethrow(OSError, io_failure)
def write_skeleton(layout: ProjectLayout, artifacts: ServiceArtifacts) -> list[Path]:
    """Create a service's directories and starter files; return files written."""
    name = artifacts.service.name

    for directory in layout.service_paths(name):
        directory.mkdir(parents=True, exist_ok=True)
        log.debug("Created {path}", path=layout.relative(directory), service=name)

    files = {
        layout.service_dir(name) / "requirements.txt": artifacts.requirements(),
        layout.service_dir(name) / "README.md": artifacts.readme(),
        layout.build_dir(name) / "Dockerfile": artifacts.dockerfile(),
    }
    for path, content in files.items():
        path.write_text(content)
        log.debug("Wrote {path}", path=layout.relative(path), service=name)

    return list(files)


@rethrow(OSError, io_failure)
def remove_skeleton(layout: ProjectLayout, name: str) -> list[Path]:
    """Delete every directory owned by ``name``; return the ones removed."""
    removed: list[Path] = []
    for directory in layout.service_paths(name):
        if directory.is_dir():
            shutil.rmtree(directory)
            removed.append(directory)
            log.debug("Removed {path}", path=layout.relative(directory), service=name)
    return removed


@rethrow(OSError, io_failure)
def write_dockerfile(layout: ProjectLayout, artifacts: ServiceArtifacts) -> Path:
    """Rewrite only the Dockerfile, e.g. after a service's ports changed."""
    path = layout.build_dir(artifacts.service.name) / "Dockerfile"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(artifacts.dockerfile())
    log.debug("Wrote {path}", path=layout.relative(path), service=artifacts.service.name)
    return path
