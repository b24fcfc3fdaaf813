"""pestr configuration — loads from ~/.config/pestr/config.toml.

Values are resolved in order: built-in defaults, then the TOML file, then
``PESTR_*`` environment variables.  Command-line flags are applied on top
by :mod:`pestr.main`.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

from pestr.geometry import InvalidParameter, SearchConfig, to_fraction

try:
    import tomllib  # type: ignore[import-not-found]
except ModuleNotFoundError:
    try:
        import tomli as tomllib  # type: ignore[no-redef,import-not-found]
    except ModuleNotFoundError:
        tomllib = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(os.environ.get(
    "PESTR_CONFIG",
    Path.home() / ".config" / "pestr" / "config.toml",
))

DEFAULT_CPUS_PER_NODE = 128

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class PestrConfig:
    """Resolved settings with sensible defaults."""

    cpus_per_node: int = DEFAULT_CPUS_PER_NODE
    hyperthreading: bool = False
    search: SearchConfig = field(default_factory=SearchConfig)


def _as_positive_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"not an integer: {value!r}")
    number = int(value)
    if number < 1:
        raise ValueError(f"must be > 0: {value!r}")
    return number


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _as_radius(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    radius = float(value)
    try:
        to_fraction(radius)
    except InvalidParameter as exc:
        raise ValueError(str(exc)) from exc
    return radius


def _apply(cfg: PestrConfig, values: Mapping[str, Any], source: str) -> PestrConfig:
    """Return *cfg* updated with every valid entry of *values*.

    Bad entries are skipped (and logged) so that one typo does not discard
    the rest of the configuration.
    """
    top: dict[str, Any] = {}
    search: dict[str, Any] = {}
    for key, attr, convert, target in [
        ("cpus_per_node", "cpus_per_node", _as_positive_int, top),
        ("hyperthreading", "hyperthreading", _as_bool, top),
        ("conserve_nodes", "conserve_nodes", _as_bool, search),
        ("pe_radius", "pe_radius", _as_radius, search),
        ("thread_radius", "thread_radius", _as_radius, search),
    ]:
        if key not in values:
            continue
        try:
            target[attr] = convert(values[key])
        except (ValueError, TypeError):
            logger.debug("ignoring %s from %s: %r", key, source, values[key])

    cfg = replace(cfg, **top)
    if search:
        cfg = replace(cfg, search=replace(cfg.search, **search))
    return cfg


def _read_file(config_path: Path) -> dict[str, Any]:
    if not config_path.is_file():
        return {}
    if tomllib is None:
        return {}

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except Exception:
        logger.debug("could not parse %s, using defaults", config_path)
        return {}

    values = {k: v for k, v in data.items() if k in ("cpus_per_node", "hyperthreading")}
    search = data.get("search", {})
    if isinstance(search, dict):
        for key in ("conserve_nodes", "pe_radius", "thread_radius"):
            if key in search:
                values[key] = search[key]
    return values


def _read_env(environ: Mapping[str, str]) -> dict[str, str]:
    values = {}
    for key, var in [
        ("cpus_per_node", "PESTR_CPUS_PER_NODE"),
        ("hyperthreading", "PESTR_HYPERTHREADING"),
        ("conserve_nodes", "PESTR_SEARCH_CONSERVE_NODES"),
        ("pe_radius", "PESTR_SEARCH_PE_RADIUS"),
        ("thread_radius", "PESTR_SEARCH_THREAD_RADIUS"),
    ]:
        if var in environ:
            values[key] = environ[var]
    return values


def load_config(
    path: Path | None = None, environ: Mapping[str, str] | None = None,
) -> PestrConfig:
    """Load config from TOML file and environment, falling back to defaults."""
    config_path = path or CONFIG_PATH
    env = os.environ if environ is None else environ

    cfg = PestrConfig()
    cfg = _apply(cfg, _read_file(config_path), str(config_path))
    cfg = _apply(cfg, _read_env(env), "environment")
    logger.debug("resolved configuration: %s", cfg)
    return cfg
