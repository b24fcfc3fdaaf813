"""pestr — node-filling geometry calculator for parallel jobs."""

__version__ = "0.3.0"

from pestr.geometry import (
    CandidateGeometry,
    GeometryInput,
    GeometryReport,
    InvalidParameter,
    SearchConfig,
    evaluate,
    search,
)

__all__ = [
    "CandidateGeometry",
    "GeometryInput",
    "GeometryReport",
    "InvalidParameter",
    "SearchConfig",
    "evaluate",
    "search",
    "__version__",
]
