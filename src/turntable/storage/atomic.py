"""Publish files next to source models without exposing half-written output."""

from __future__ import annotations

from contextlib import contextmanager
import json
import os
from pathlib import Path
import tempfile
from typing import Any, Iterator


def partial_path(dest: Path, token: str) -> Path:
    """Hidden sibling of ``dest`` used while a publish is in flight."""

    return dest.with_name(f".{dest.name}.{token}.partial")


@contextmanager
def staged_file(dest: Path, token: str) -> Iterator[Path]:
    """Yield a staging path that replaces ``dest`` only if the block succeeds.

    The staging file is removed whatever happens, so an existing ``dest`` is
    either left untouched or replaced in one rename.
    """

    staging = partial_path(dest, token)
    try:
        yield staging
        os.replace(staging, dest)
    finally:
        staging.unlink(missing_ok=True)


def atomic_write_json(path: Path, payload: Any) -> None:
    """Write a JSON document through a temp file in the same directory."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True, default=str)
            handle.write("\n")
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
