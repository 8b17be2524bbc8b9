"""Shared atomic file I/O for persistent data files."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from league_bot.config import DATA_DIR as DATA_DIR
from league_bot.config import TZ as TZ

STATE_DIR = DATA_DIR / "state"

log = logging.getLogger(__name__)


class StoreError(Exception):
    """A single read or write against the data directory failed."""


def atomic_write(filepath: Path, content: str) -> None:
    """Write via temp file + os.replace so readers never see a partial file."""
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=filepath.parent, suffix=".tmp")
    except OSError as e:
        raise StoreError(f"could not write {filepath}: {e}") from e
    try:
        try:
            os.write(fd, content.encode())
            os.fsync(fd)
        finally:
            os.close(fd)
        os.replace(tmp, filepath)
    except OSError as e:
        Path(tmp).unlink(missing_ok=True)
        raise StoreError(f"could not write {filepath}: {e}") from e


# --- YAML records ---


def dump_yaml(data: dict[str, Any]) -> str:
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def load_yaml(text: str) -> dict[str, Any]:
    """Parse a YAML mapping. Raises ValueError for anything else."""
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("YAML document is not a mapping")
    return data


def read_yaml_dir(dir_path: Path) -> tuple[list[tuple[Path, dict[str, Any]]], list[Path]]:
    """Read every .yaml file in a directory.

    Returns (parsed, corrupt). Files that fail to parse are logged and listed
    in ``corrupt`` instead of aborting the scan.
    """
    if not dir_path.exists():
        return [], []
    try:
        paths = sorted(dir_path.glob("*.yaml"))
    except OSError as e:
        raise StoreError(f"could not list {dir_path}: {e}") from e
    parsed: list[tuple[Path, dict[str, Any]]] = []
    corrupt: list[Path] = []
    for filepath in paths:
        try:
            parsed.append((filepath, load_yaml(filepath.read_text())))
        except (OSError, ValueError, yaml.YAMLError):
            log.warning("Skipping corrupt file: %s", filepath)
            corrupt.append(filepath)
    return parsed, corrupt


# --- JSON state ---


def read_json(filepath: Path, default: Any) -> Any:
    """Missing file yields ``default``; an unreadable one raises StoreError."""
    if not filepath.exists():
        return default
    try:
        return json.loads(filepath.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise StoreError(f"could not read {filepath}: {e}") from e


def write_json(filepath: Path, data: Any) -> None:
    atomic_write(filepath, json.dumps(data, indent=2))
