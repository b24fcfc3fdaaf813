"""Input validators for pestr."""

from __future__ import annotations

import math
import re

from pestr.geometry import SearchConfig


def parse_positive_int(text: str) -> int:
    """Parse *text* as an integer greater than zero.

    Raises :class:`ValueError` on invalid input.
    """
    text = str(text).strip()
    if not text:
        raise ValueError("Empty value")
    try:
        value = int(text)
    except ValueError:
        raise ValueError(f"must be a positive integer: {text!r}") from None
    if value < 1:
        raise ValueError(f"must be > 0: {text!r}")
    return value


def parse_radius(text: str) -> float:
    """Parse a search radius: a finite real number ``>= 0``."""
    text = str(text).strip()
    if not text:
        raise ValueError("Empty value")
    try:
        value = float(text)
    except ValueError:
        raise ValueError(f"must be a real number: {text!r}") from None
    if not math.isfinite(value):
        raise ValueError(f"must be finite: {text!r}")
    if value < 0:
        raise ValueError(f"must be >= 0: {text!r}")
    return value


_FLOAT_OPT_RE = re.compile(
    r"^(?P<name>pe_radius|thread_radius)=(?P<value>[0-9]*\.?[0-9]+)$"
)


def parse_search_options(
    text: str, defaults: SearchConfig | None = None,
) -> SearchConfig:
    """Parse a compact search option string into a :class:`SearchConfig`.

    The string is a comma-separated list of::

        conserve_nodes
        pe_radius=<float>
        thread_radius=<float>

    Options not mentioned keep their value from *defaults*.  An empty
    string returns *defaults* unchanged.
    """
    defaults = defaults or SearchConfig()
    values = {
        "conserve_nodes": defaults.conserve_nodes,
        "pe_radius": defaults.pe_radius,
        "thread_radius": defaults.thread_radius,
    }
    text = text.strip()
    if not text:
        return defaults

    for opt in text.split(","):
        opt = opt.strip()
        if opt == "conserve_nodes":
            values["conserve_nodes"] = True
            continue
        match = _FLOAT_OPT_RE.match(opt)
        if not match:
            raise ValueError(f"unknown search option: {opt!r}")
        values[match.group("name")] = float(match.group("value"))

    return SearchConfig(**values)
