"""Tests for row decoding into attribute maps.

This module covers the capture strategies and rows_to_maps:
    - ScalarCapture keeps values untouched, GeometryCapture decodes WKB,
    - rows keep their source order and every column appears in each map,
    - a single invalid geometry discards the whole result set,
    - row source failures propagate unchanged,
    - CursorRowSource adapts a DB-API cursor.

See Also:
    - backend/tileserver/db/rows.py for the implementation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from shapely import geometry

from tileserver import errors
from tileserver.db import rows

if TYPE_CHECKING:
    from collections.abc import Sequence


class ScanError(Exception):
    """Raised by the fake row source to simulate a driver failure."""


class FakeRowSource:
    """In-memory row source that can fail while scanning a given row."""

    def __init__(
        self,
        columns: Sequence[str],
        data: Sequence[Sequence[object]],
        fail_at: int | None = None,
    ) -> None:
        self._columns = [rows.ColumnDescriptor(name) for name in columns]
        self._data = data
        self._fail_at = fail_at
        self._index = -1
        self.scanned = 0

    def columns(self) -> list[rows.ColumnDescriptor]:
        return self._columns

    def next(self) -> bool:
        self._index += 1
        return self._index < len(self._data)

    def scan(self, destinations: Sequence[rows.ColumnCapture]) -> None:
        if self._index == self._fail_at:
            raise ScanError("connection reset while reading row")
        for destination, value in zip(destinations, self._data[self._index]):
            destination.scan(value)
        self.scanned += 1


def test_scalar_capture_keeps_value_untouched() -> None:
    """Test that ScalarCapture stores exactly what it is given."""
    capture = rows.ScalarCapture()
    value = {"nested": [1, 2]}
    capture.scan(value)
    assert capture.value is value


def test_geometry_capture_decodes_wkb() -> None:
    """Test that WKB bytes decode into a valid geometry."""
    capture = rows.GeometryCapture()
    capture.scan(geometry.Point(1.5, 2.5).wkb)
    assert capture.value.valid
    assert capture.value.shape is not None
    assert capture.value.shape.equals(geometry.Point(1.5, 2.5))


def test_geometry_capture_accepts_memoryview_and_hex() -> None:
    """Test the bytea (memoryview) and hex WKB forms drivers return."""
    line = geometry.LineString([(0, 0), (1, 1)])
    from_view = rows.GeometryCapture()
    from_view.scan(memoryview(line.wkb))
    from_hex = rows.GeometryCapture()
    from_hex.scan(line.wkb_hex)
    assert from_view.value.valid
    assert from_hex.value.valid
    assert from_hex.value.shape is not None
    assert from_hex.value.shape.equals(line)


def test_geometry_capture_null_is_invalid() -> None:
    """Test that a NULL geometry is recorded as invalid."""
    capture = rows.GeometryCapture()
    capture.scan(None)
    assert not capture.value.valid
    assert capture.value.shape is None


def test_geometry_capture_garbage_is_invalid() -> None:
    """Test that undecodable bytes are recorded as invalid."""
    capture = rows.GeometryCapture()
    capture.scan(b"\x01\x02not-wkb")
    assert not capture.value.valid


def test_captures_for_selects_by_column_name() -> None:
    """Test that only the geometry column gets a GeometryCapture."""
    columns = [
        rows.ColumnDescriptor("id"),
        rows.ColumnDescriptor("geom"),
        rows.ColumnDescriptor("name"),
    ]
    captures = rows.captures_for(columns, "geom")
    assert [type(c) for c in captures] == [
        rows.ScalarCapture,
        rows.GeometryCapture,
        rows.ScalarCapture,
    ]


def test_rows_to_maps_preserves_order_and_columns() -> None:
    """Test that every row becomes one map, in source order."""
    data = [
        (i, f"road-{i}", geometry.Point(i, i).wkb) for i in range(5)
    ]
    source = FakeRowSource(["id", "name", "geom"], data)

    maps = rows.rows_to_maps(source, "geom")

    assert len(maps) == 5
    assert [m["id"] for m in maps] == [0, 1, 2, 3, 4]
    assert set(maps[0]) == {"id", "name", "geom"}
    assert maps[3]["name"] == "road-3"
    assert maps[3]["geom"].equals(geometry.Point(3, 3))


def test_rows_to_maps_without_geometry_column() -> None:
    """Test that a result without the geometry column passes scalars through."""
    source = FakeRowSource(["id", "name"], [(1, "a"), (2, "b")])
    maps = rows.rows_to_maps(source, "geom")
    assert maps == [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]


def test_rows_to_maps_empty_source() -> None:
    """Test that an empty source yields an empty list."""
    source = FakeRowSource(["id", "geom"], [])
    assert rows.rows_to_maps(source, "geom") == []


def test_rows_to_maps_invalid_geometry_discards_everything() -> None:
    """Test that one invalid geometry fails the whole materialization."""
    data = [
        (1, geometry.Point(0, 0).wkb),
        (2, geometry.Point(1, 1).wkb),
        (3, None),
        (4, geometry.Point(2, 2).wkb),
    ]
    source = FakeRowSource(["id", "geom"], data)

    with pytest.raises(errors.InvalidGeometryError) as exc_info:
        rows.rows_to_maps(source, "geom")

    assert exc_info.value.column == "geom"
    # Rows after the invalid one are never read.
    assert source.scanned == 3


def test_rows_to_maps_propagates_scan_failure_unchanged() -> None:
    """Test that row source errors are not wrapped as invalid geometry."""
    data = [(1, geometry.Point(0, 0).wkb), (2, geometry.Point(1, 1).wkb)]
    source = FakeRowSource(["id", "geom"], data, fail_at=1)

    with pytest.raises(ScanError):
        rows.rows_to_maps(source, "geom")


class FakeCursor:
    """Minimal DB-API cursor exposing description and fetchone."""

    def __init__(
        self,
        description: Sequence[tuple[object, ...]],
        data: Sequence[tuple[object, ...]],
    ) -> None:
        self.description = description
        self._data = list(data)

    def fetchone(self) -> tuple[object, ...] | None:
        return self._data.pop(0) if self._data else None


def test_cursor_row_source_reads_description_and_rows() -> None:
    """Test that CursorRowSource feeds cursor rows to the captures."""
    cursor = FakeCursor(
        description=[("gid", 23), ("geom", 17)],
        data=[(7, geometry.Point(4, 5).wkb)],
    )
    source = rows.CursorRowSource(cursor)  # type: ignore[arg-type]

    assert source.columns() == [
        rows.ColumnDescriptor("gid", 23),
        rows.ColumnDescriptor("geom", 17),
    ]
    maps = rows.rows_to_maps(source, "geom")
    assert len(maps) == 1
    assert maps[0]["gid"] == 7
    assert maps[0]["geom"].equals(geometry.Point(4, 5))


def test_cursor_row_source_rejects_wrong_destination_count() -> None:
    """Test that scanning into the wrong number of captures fails."""
    cursor = FakeCursor(description=[("a", None)], data=[(1,)])
    source = rows.CursorRowSource(cursor)  # type: ignore[arg-type]
    assert source.next()
    with pytest.raises(ValueError):
        source.scan([rows.ScalarCapture(), rows.ScalarCapture()])
