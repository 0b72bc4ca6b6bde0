"""
geoscan.spatial: H3 precision selection and polygon tiling.

The grid itself is pluggable through :class:`SpatialIndex`; :class:`H3Index`
is the default implementation.
"""

from .h3_utils import (
    DEFAULT_INDEX,
    H3Index,
    SpatialIndex,
    cell_diagonal_m,
    format_cell,
    select_precision,
)
from .tiles import (
    TIE_BREAK_POLICIES,
    ambiguous_cells,
    expand_tiles,
    resolve_tiles,
)

__all__ = [
    "DEFAULT_INDEX",
    "H3Index",
    "SpatialIndex",
    "TIE_BREAK_POLICIES",
    "ambiguous_cells",
    "cell_diagonal_m",
    "expand_tiles",
    "format_cell",
    "resolve_tiles",
    "select_precision",
]
