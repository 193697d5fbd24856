"""Grid-type dispatch.

This is the only place that branches on the grid-type discriminator;
the two decoders know nothing about each other.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Callable

from petragrid.decoders.rectangular import RectangularData, decode_rectangular
from petragrid.decoders.triangular import TriangularData, decode_triangular
from petragrid.errors import UnsupportedGridTypeError


class GridType(IntEnum):
    RECTANGULAR = 1
    TRIANGULAR = 2


_DECODERS: dict[GridType, Callable] = {
    GridType.RECTANGULAR: decode_rectangular,
    GridType.TRIANGULAR: decode_triangular,
}


def select_decoder(tag: int) -> tuple[GridType, Callable]:
    """Return ``(grid_type, decoder)`` for a discriminator value.

    Raises
    ------
    UnsupportedGridTypeError
        For any tag other than the two known ones.
    """
    try:
        grid_type = GridType(tag)
    except ValueError:
        raise UnsupportedGridTypeError(tag) from None
    return grid_type, _DECODERS[grid_type]


__all__ = [
    "GridType",
    "RectangularData",
    "TriangularData",
    "decode_rectangular",
    "decode_triangular",
    "select_decoder",
]
