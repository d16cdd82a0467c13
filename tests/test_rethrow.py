from __future__ import annotations

import re
from pathlib import Path

import pytest

from aipods.core.exceptions import AiPodsError, IOFailureError
from aipods.internal.rethrow import io_failure, rethrow

pytestmark = [pytest.mark.unit]


@rethrow(OSError, io_failure)
def _write(path: Path) -> int:
    return path.write_text("x")


class TestRethrow:
    def test_passes_results_through(self, tmp_path: Path) -> None:
        assert _write(tmp_path / "f.txt") == 1

    def test_os_error_becomes_io_failure_naming_the_path(self, tmp_path: Path) -> None:
        missing = tmp_path / "nope" / "f.txt"
        with pytest.raises(IOFailureError, match=re.escape(str(missing))) as exc:
            _write(missing)
        assert isinstance(exc.value, AiPodsError)
        assert isinstance(exc.value.__cause__, FileNotFoundError)

    def test_other_errors_propagate_unchanged(self) -> None:
        @rethrow(OSError, io_failure)
        def boom() -> None:
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            boom()

    def test_io_failure_without_filename(self) -> None:
        assert str(io_failure(OSError("disk full"))) == "disk full"
