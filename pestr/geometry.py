"""Job geometry arithmetic — node usage of a (PEs x threads) layout.

A *geometry* is the shape of a parallel job: ``pe_count`` processing
elements (MPI tasks), each running ``threads_per_pe`` threads.  Given the
number of CPUs on a node, :func:`evaluate` works out how many nodes the job
reserves and how many of the reserved cores sit idle.  :func:`search` walks
a neighbourhood of the input geometry looking for layouts that fill their
nodes exactly.

A PE is never split across nodes: each node hosts ``cpus // threads_per_pe``
whole PEs, so a geometry such as 128 x 12 on 128-CPU nodes reserves 13 nodes
even though 1536 cores would fit in 12.

Everything here is integer (or exact rational) arithmetic with no side
effects, so every function is safe to call repeatedly or concurrently.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction
from typing import Union

logger = logging.getLogger(__name__)

Radius = Union[int, float, str, Decimal, Fraction]


class InvalidParameter(ValueError):
    """A geometry or search parameter is out of range."""


@dataclass(frozen=True)
class GeometryInput:
    """The shape of a job plus the node size it runs on."""

    pe_count: int
    threads_per_pe: int
    cpus_per_node: int = 128
    hyperthreading: bool = False


@dataclass(frozen=True)
class GeometryReport:
    """Node usage of a single geometry, as computed by :func:`evaluate`."""

    nodes_used: int
    cores_reserved: int
    cores_in_use: int
    cores_idle: int
    idle_node_count: int
    is_filled: bool


@dataclass(frozen=True)
class SearchConfig:
    """Neighbourhood to explore around an input geometry.

    Radii are fractions of the input value: ``pe_radius=0.25`` on 128 PEs
    explores 96..160 PEs.
    """

    pe_radius: Radius = Fraction(1, 4)
    thread_radius: Radius = Fraction(1, 2)
    conserve_nodes: bool = False


@dataclass(frozen=True)
class CandidateGeometry:
    """A geometry found by :func:`search` together with its report."""

    pe_count: int
    threads_per_pe: int
    report: GeometryReport

    @property
    def nodes_used(self) -> int:
        return self.report.nodes_used

    @property
    def cores_in_use(self) -> int:
        return self.report.cores_in_use


def _ceil_div(a: int, b: int) -> int:
    return (a + b - 1) // b


def _check_positive(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise InvalidParameter(f"{name} must be >= 1, got {value}")
    return value


def effective_cpus(cpus_per_node: int, hyperthreading: bool = False) -> int:
    """Return the schedulable CPUs of one node (doubled with hyperthreading)."""
    return cpus_per_node * 2 if hyperthreading else cpus_per_node


def evaluate(
    pe_count: int,
    threads_per_pe: int,
    cpus_per_node: int,
    hyperthreading: bool = False,
) -> GeometryReport:
    """Compute the node usage of *pe_count* x *threads_per_pe*.

    Raises :class:`InvalidParameter` if any argument is not a positive
    integer.
    """
    pes = _check_positive("pe_count", pe_count)
    threads = _check_positive("threads_per_pe", threads_per_pe)
    cpus = effective_cpus(_check_positive("cpus_per_node", cpus_per_node), hyperthreading)

    if threads <= cpus:
        nodes = _ceil_div(pes, cpus // threads)
    else:
        # every PE is wider than a node and gets whole nodes to itself
        nodes = pes * _ceil_div(threads, cpus)

    reserved = nodes * cpus
    in_use = pes * threads
    idle = reserved - in_use
    return GeometryReport(
        nodes_used=nodes,
        cores_reserved=reserved,
        cores_in_use=in_use,
        cores_idle=idle,
        idle_node_count=_ceil_div(idle, cpus) if idle > 0 else 0,
        is_filled=idle == 0,
    )


def evaluate_input(geometry: GeometryInput) -> GeometryReport:
    """Shorthand for :func:`evaluate` on a :class:`GeometryInput`."""
    return evaluate(
        geometry.pe_count,
        geometry.threads_per_pe,
        geometry.cpus_per_node,
        geometry.hyperthreading,
    )


def to_fraction(radius: Radius, name: str = "radius") -> Fraction:
    """Convert *radius* to an exact non-negative :class:`Fraction`.

    Floats go through their shortest decimal text, so ``0.3`` becomes
    ``3/10`` rather than the nearest binary double.
    """
    if isinstance(radius, bool):
        raise InvalidParameter(f"{name} must be a number, got {radius!r}")
    if isinstance(radius, float) and not math.isfinite(radius):
        raise InvalidParameter(f"{name} must be finite, got {radius!r}")
    try:
        value = Fraction(repr(radius) if isinstance(radius, float) else radius)
    except (ValueError, TypeError, ZeroDivisionError, OverflowError) as exc:
        raise InvalidParameter(f"{name} must be a number, got {radius!r}") from exc
    if value < 0:
        raise InvalidParameter(f"{name} must be >= 0, got {radius}")
    return value


def candidate_range(value: int, radius: Radius) -> range:
    """Return the integers within ``radius * value`` of *value*.

    The bounds are ``ceil(v - r*v)`` and ``floor(v + r*v)``, both inclusive,
    with the lower bound clamped to 1.  An inverted range comes back empty.
    """
    r = to_fraction(radius)
    delta = r * value
    low = max(1, math.ceil(value - delta))
    high = math.floor(value + delta)
    return range(low, high + 1)


def search(
    geometry: GeometryInput, config: SearchConfig | None = None,
) -> list[CandidateGeometry]:
    """Find geometries near *geometry* that fill their nodes exactly.

    Candidates come from the cross product of the PE and thread ranges
    defined by *config*.  Only filled geometries are kept; with
    ``conserve_nodes`` they must also use the same number of nodes as the
    input.  Results are unique and ordered by node count, then PE count,
    then threads.
    """
    config = config or SearchConfig()
    pe_radius = to_fraction(config.pe_radius, "pe_radius")
    thread_radius = to_fraction(config.thread_radius, "thread_radius")
    base = evaluate_input(geometry)

    pe_range = candidate_range(geometry.pe_count, pe_radius)
    thread_range = candidate_range(geometry.threads_per_pe, thread_radius)
    logger.debug(
        "searching PEs %s..%s x threads %s..%s (conserve_nodes=%s)",
        pe_range.start, pe_range.stop - 1,
        thread_range.start, thread_range.stop - 1,
        config.conserve_nodes,
    )

    found: dict[tuple[int, int], CandidateGeometry] = {}
    for pes in pe_range:
        for threads in thread_range:
            if (pes, threads) in found:
                continue
            report = evaluate(
                pes, threads, geometry.cpus_per_node, geometry.hyperthreading,
            )
            if not report.is_filled:
                continue
            if config.conserve_nodes and report.nodes_used != base.nodes_used:
                continue
            found[(pes, threads)] = CandidateGeometry(pes, threads, report)

    logger.debug(
        "evaluated %d candidates, %d fill their nodes",
        len(pe_range) * len(thread_range), len(found),
    )
    return sorted(
        found.values(),
        key=lambda c: (c.nodes_used, c.pe_count, c.threads_per_pe),
    )
