"""Utility helpers for reading the datasets bundled with the nutrient engine."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from os import PathLike
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, TextIO, TypeVar, Union

import yaml

__all__ = [
    "load_json",
    "load_data",
    "load_dataset",
    "load_dataset_df",
    "clear_dataset_cache",
    "dataset_paths",
    "dataset_cache",
    "get_data_dir",
    "get_extra_dirs",
    "overlay_dir",
    "deep_update",
    "normalize_key",
    "list_dataset_entries",
]


PathType = Union[str, PathLike]


def _open_text(path: Path) -> TextIO:
    return open(path, "r", encoding="utf-8")


def load_json(path: PathType) -> Dict[str, Any]:
    """Return the parsed JSON contents of ``path``.

    A :class:`FileNotFoundError` is raised if the file does not exist and a
    :class:`ValueError` is raised when the contents cannot be decoded as JSON.
    The error message always includes the file path to aid debugging.
    """

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    try:
        with _open_text(p) as f:
            return json.load(f)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {p}: {exc}") from exc


def load_data(path: PathType) -> Any:
    """Return the parsed contents of ``path`` supporting JSON or YAML."""

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        return load_json(p)

    try:
        with _open_text(p) as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {p}: {exc}") from exc


def deep_update(base: Dict[str, Any], other: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``other`` into ``base`` and return ``base``."""

    for key, value in other.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, Mapping)
        ):
            deep_update(base[key], value)
        else:
            base[key] = value
    return base


# Bundled datasets live in the package ``data`` folder. The location can be
# replaced with ``NUTRIENT_DATA_DIR``. Additional directories listed in
# ``NUTRIENT_EXTRA_DATA_DIRS`` (``os.pathsep`` separated) are merged in order
# after the base directory and ``NUTRIENT_OVERLAY_DIR`` is merged last, so a
# single file can be recalibrated without copying the whole data folder.
DEFAULT_DATA_DIR = Path(__file__).resolve().parent / "data"
DATA_ENV = "NUTRIENT_DATA_DIR"
EXTRA_ENV = "NUTRIENT_EXTRA_DATA_DIRS"
OVERLAY_ENV = "NUTRIENT_OVERLAY_DIR"


def get_data_dir() -> Path:
    """Return base dataset directory honoring the ``NUTRIENT_DATA_DIR`` env."""

    env = os.getenv(DATA_ENV)
    return Path(env).expanduser() if env else DEFAULT_DATA_DIR


def get_extra_dirs() -> tuple[Path, ...]:
    """Return additional dataset directories from ``NUTRIENT_EXTRA_DATA_DIRS``."""

    env = os.getenv(EXTRA_ENV)
    if not env:
        return ()
    dirs: list[Path] = []
    for part in env.split(os.pathsep):
        path = Path(part).expanduser()
        if path.is_dir():
            dirs.append(path)
    return tuple(dirs)


def overlay_dir() -> Path | None:
    """Return the overlay directory defined via ``NUTRIENT_OVERLAY_DIR``."""

    env = os.getenv(OVERLAY_ENV)
    return Path(env).expanduser() if env else None


def dataset_paths() -> tuple[Path, ...]:
    """Return directories searched when loading datasets, overlay excluded."""

    return (get_data_dir(), *get_extra_dirs())


_F = TypeVar("_F", bound=Callable[..., Any])
_CACHED: list[Any] = []


def dataset_cache(func: _F) -> _F:
    """Cache ``func`` like :func:`functools.lru_cache` until the datasets change.

    Tables derived from datasets use this instead of a bare ``lru_cache`` so
    that :func:`clear_dataset_cache` resets them together with the raw data.
    """

    cached = lru_cache(maxsize=None)(func)
    _CACHED.append(cached)
    return cached  # type: ignore[return-value]


@dataset_cache
def load_dataset(filename: str) -> Any:
    """Return dataset ``filename`` merged with any extra and overlay data."""

    data: Any = {}
    bases = list(dataset_paths())
    overlay = overlay_dir()
    if overlay:
        bases.append(overlay)

    for base in bases:
        path = base / filename
        if not path.exists():
            continue
        extra = load_data(path)
        if isinstance(extra, dict) and isinstance(data, dict):
            deep_update(data, extra)
        else:
            data = extra

    return data


def load_dataset_df(filename: str) -> "pd.DataFrame":
    """Return dataset ``filename`` as a :class:`pandas.DataFrame`.

    Dictionaries are treated as row mappings and lists as row sequences.
    Unsupported data structures raise ``ValueError``.
    """

    import pandas as pd

    data = load_dataset(filename)
    if isinstance(data, Mapping):
        return pd.DataFrame.from_dict(data, orient="index")
    if isinstance(data, list):
        return pd.DataFrame(data)
    raise ValueError(f"Dataset {filename} is not tabular")


def clear_dataset_cache() -> None:
    """Clear cached datasets and every table built with :func:`dataset_cache`."""

    for cached in _CACHED:
        cached.cache_clear()


def normalize_key(key: str) -> str:
    """Return ``key`` normalized for case-insensitive dataset lookups.

    The function uses :meth:`str.casefold` and normalizes whitespace, hyphens
    and underscores to a single underscore character.
    """

    value = str(key).casefold()
    for sep in ("_", "-"):
        value = value.replace(sep, " ")
    parts = [p for p in value.strip().split() if p]
    return "_".join(parts)


def list_dataset_entries(dataset: Mapping[str, Any]) -> list[str]:
    """Return sorted top-level keys from a dataset mapping."""

    return sorted(str(k) for k in dataset.keys())
