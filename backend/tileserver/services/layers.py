"""Runtime layers and the backend registry.

A layer document names exactly one backend section. BACKENDS maps each
section key to the class that turns it into a runtime backend, so a new
data source only needs a config model, a backend class and an entry here.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any, Protocol

from tileserver.services import search, tiles_postgis

if TYPE_CHECKING:
    from collections.abc import Callable

    from tileserver.db import models

MIN_ZOOM = 0
MAX_ZOOM = 22


class Backend(Protocol):
    """Protocol interface shared by all layer backends."""

    kind: str

    @property
    def geometry_field(self) -> str: ...

    def close(self) -> None: ...


BACKENDS: dict[str, Callable[[Any], Backend]] = {
    search.ElasticsearchBackend.kind: search.ElasticsearchBackend,
    tiles_postgis.PostGISBackend.kind: tiles_postgis.PostGISBackend,
}


@dataclasses.dataclass(frozen=True)
class Layer:
    """A configured layer with its constructed backend.

    Attributes:
        name: Layer name, unique within a server.
        description: Free-form description.
        minzoom: Lowest zoom level the layer is served at.
        maxzoom: Highest zoom level the layer is served at.
        backend: Backend the layer's features are read from.
    """

    name: str
    description: str
    minzoom: int
    maxzoom: int
    backend: Backend


def create_layer(document: models.LayerDocument) -> Layer:
    """Resolve a layer document into a runtime Layer.

    Raises:
        ValueError: If the layer does not name exactly one backend, has an
            invalid zoom range, or its backend settings are invalid.
    """
    sections = {
        kind: getattr(document, kind)
        for kind in BACKENDS
        if getattr(document, kind, None) is not None
    }
    if len(sections) != 1:
        raise ValueError(
            f"layer {document.name!r} must configure exactly one backend "
            f"({', '.join(sorted(BACKENDS))}), got {len(sections)}"
        )
    if not MIN_ZOOM <= document.minzoom <= document.maxzoom <= MAX_ZOOM:
        raise ValueError(
            f"layer {document.name!r} has invalid zoom range "
            f"{document.minzoom}-{document.maxzoom}"
        )

    ((kind, section),) = sections.items()
    try:
        backend = BACKENDS[kind](section)
    except ValueError as exc:
        raise ValueError(f"layer {document.name!r}: {exc}") from exc

    return Layer(
        name=document.name,
        description=document.description,
        minzoom=document.minzoom,
        maxzoom=document.maxzoom,
        backend=backend,
    )
