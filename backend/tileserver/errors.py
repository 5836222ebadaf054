"""Error types raised by the tile server core.

Every error the package raises on purpose derives from TileServerError so
that the assembler can tell deliberate failures apart from unexpected ones
raised by third-party clients. Failures coming from a row source (for
example a psycopg2 driver error) are never wrapped and reach the caller
unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class TileServerError(Exception):
    """Base class for errors raised by the tile server core."""


class InvalidGeometryError(TileServerError):
    """The designated geometry column of a row could not be decoded."""

    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(f"Column value was not a valid geometry: {column!r}")


class ConfigParseError(TileServerError):
    """The configuration document is malformed or has unknown fields.

    Attributes:
        message: Human readable description of the problem.
        line: 1-based line of the offending node, if known.
        column: 1-based column of the offending node, if known.
        location: Key path of the offending value (e.g. ``("layers", 0)``).
    """

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        location: Sequence[str | int] = (),
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.location = tuple(location)
        super().__init__(self._format())

    def _format(self) -> str:
        text = self.message
        if self.location:
            text = f"{'.'.join(str(part) for part in self.location)}: {text}"
        if self.line is not None:
            text = f"line {self.line}, column {self.column}: {text}"
        return text


class OptionApplicationError(TileServerError):
    """A server assembly step failed.

    Attributes:
        option: The option descriptor whose application failed.
    """

    def __init__(self, option: object, reason: str) -> None:
        self.option = option
        super().__init__(f"{type(option).__name__}: {reason}")
