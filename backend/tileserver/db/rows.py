"""Row decoding helpers that turn query results into attribute maps.

A row source hands every column of a row to a capture object. Most columns
are captured verbatim by ScalarCapture; the one column named after the
backend's geometry field is captured by GeometryCapture, which decodes WKB
into a shapely geometry and records whether decoding succeeded.

rows_to_maps drives a row source to exhaustion and returns one attribute
map per row, in row order. Materialization is all-or-nothing: the first
invalid geometry aborts the whole call with InvalidGeometryError and no
partial list is returned.

Example:
    Materialize a psycopg2 cursor that selected ``ST_AsBinary(geom) AS geom``:
        >>> from tileserver.db import rows
        >>> cur.execute("SELECT id, name, ST_AsBinary(geom) AS geom FROM roads")
        >>> features = rows.rows_to_maps(rows.CursorRowSource(cur), "geom")
        >>> features[0]["geom"].geom_type
        'LineString'
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol

import shapely
import shapely.errors

from tileserver import errors

if TYPE_CHECKING:
    from collections.abc import Sequence

    import psycopg2.extensions
    from shapely.geometry.base import BaseGeometry

logger = logging.getLogger(__name__)

AttributeMap = dict[str, Any]


class ColumnDescriptor(NamedTuple):
    """Name and driver type hint of one result column."""

    name: str
    type_hint: object = None


class ColumnCapture(Protocol):
    """Destination for one column value of the current row."""

    def scan(self, src: object) -> None: ...

    @property
    def value(self) -> object: ...


class RowSource(Protocol):
    """Protocol interface for anything that yields rows column by column.

    ``next`` advances to the following row and returns False once the source
    is exhausted. ``scan`` hands the current row's values to one destination
    per column and raises if the row cannot be read.
    """

    def columns(self) -> Sequence[ColumnDescriptor]: ...

    def next(self) -> bool: ...

    def scan(self, destinations: Sequence[ColumnCapture]) -> None: ...


@dataclasses.dataclass(frozen=True)
class GeometryValue:
    """Decoded geometry column value.

    ``shape`` is only meaningful when ``valid`` is True.
    """

    valid: bool
    shape: BaseGeometry | None = None


class ScalarCapture:
    """Holds whatever value the row source provides, without coercion."""

    def __init__(self) -> None:
        self._value: object = None

    def scan(self, src: object) -> None:
        """Store ``src`` as the column value."""
        self._value = src

    @property
    def value(self) -> object:
        return self._value


class GeometryCapture:
    """Decodes a WKB column value into a GeometryValue."""

    def __init__(self) -> None:
        self._value = GeometryValue(valid=False)

    def scan(self, src: object) -> None:
        """Decode ``src`` as WKB (bytes, memoryview or hex string).

        NULL and undecodable values leave the capture invalid.
        """
        if src is None:
            self._value = GeometryValue(valid=False)
            return
        if isinstance(src, memoryview | bytearray):
            src = bytes(src)
        try:
            shape = shapely.from_wkb(src, on_invalid="ignore")
        except (shapely.errors.ShapelyError, TypeError, ValueError) as exc:
            logger.debug("Failed to decode WKB value: %s", exc)
            shape = None
        self._value = GeometryValue(valid=shape is not None, shape=shape)

    @property
    def value(self) -> GeometryValue:
        return self._value


class CursorRowSource:
    """Adapts a DB-API cursor (psycopg2) to the RowSource protocol."""

    def __init__(self, cursor: psycopg2.extensions.cursor) -> None:
        self._cursor = cursor
        self._row: Sequence[object] | None = None

    def columns(self) -> list[ColumnDescriptor]:
        """Return the result columns from the cursor description."""
        description = self._cursor.description or ()
        return [ColumnDescriptor(col[0], col[1]) for col in description]

    def next(self) -> bool:
        """Fetch the next row; False once the cursor is exhausted."""
        self._row = self._cursor.fetchone()
        return self._row is not None

    def scan(self, destinations: Sequence[ColumnCapture]) -> None:
        """Hand each value of the current row to its destination.

        Args:
            destinations: One capture per result column, in column order.

        Raises:
            RuntimeError: If next() has not produced a current row.
            ValueError: If the number of destinations does not match the row.
        """
        if self._row is None:
            raise RuntimeError("scan called without a current row")
        if len(destinations) != len(self._row):
            raise ValueError(
                f"expected {len(self._row)} destinations, got {len(destinations)}"
            )
        for destination, src in zip(destinations, self._row, strict=True):
            destination.scan(src)


def captures_for(
    columns: Sequence[ColumnDescriptor],
    geometry_column: str,
) -> list[ColumnCapture]:
    """Return one fresh capture per column, geometry-aware by column name."""
    return [
        GeometryCapture() if col.name == geometry_column else ScalarCapture()
        for col in columns
    ]


def decode_row(
    columns: Sequence[ColumnDescriptor],
    captures: Sequence[ColumnCapture],
) -> AttributeMap:
    """Build the attribute map of one scanned row.

    Args:
        columns: Column descriptors, in result order.
        captures: Captures populated by the row source, in the same order.

    Returns:
        Mapping from column name to decoded geometry or raw scalar value.

    Raises:
        InvalidGeometryError: If a geometry capture holds an invalid value.
    """
    attributes: AttributeMap = {}
    for col, capture in zip(columns, captures, strict=True):
        if isinstance(capture, GeometryCapture):
            geometry = capture.value
            if not geometry.valid:
                raise errors.InvalidGeometryError(col.name)
            attributes[col.name] = geometry.shape
        else:
            attributes[col.name] = capture.value
    return attributes


def rows_to_maps(source: RowSource, geometry_column: str) -> list[AttributeMap]:
    """Drain ``source`` into a list of attribute maps, preserving row order.

    Args:
        source: Row source positioned before its first row.
        geometry_column: Name of the column holding WKB geometry.

    Returns:
        One attribute map per row.

    Raises:
        InvalidGeometryError: On the first row whose geometry is invalid.
            Maps built for earlier rows are discarded.
        Exception: Any failure raised by the row source, unchanged.
    """
    columns = list(source.columns())
    maps: list[AttributeMap] = []
    while source.next():
        captures = captures_for(columns, geometry_column)
        source.scan(captures)
        maps.append(decode_row(columns, captures))
    logger.debug(
        "Materialized %d rows (geometry column %r)", len(maps), geometry_column
    )
    return maps
