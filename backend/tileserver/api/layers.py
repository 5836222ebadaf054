"""Layer metadata endpoints.

Lists the layers assembled from the configuration document, with the
zoom range each one is served at. Per-layer zoom range overrides from the
server options take precedence over the document's minzoom/maxzoom.

Example:
    List all configured layers:
        >>> response = client.get("/layers")
        >>> response.json()
        [{"name": "buildings", "description": "", "minzoom": 0,
          "maxzoom": 14, "backend": "elasticsearch",
          "geometry_field": "geometry"}]
"""

from __future__ import annotations

from typing import Any

import fastapi

from tileserver.core import options
from tileserver.services import layers as layer_registry

router = fastapi.APIRouter(prefix="/layers", tags=["layers"])


def _get_capabilities(request: fastapi.Request) -> options.ServerCapabilities:
    """Resolve the assembled server capabilities from the application state."""
    return request.app.state.capabilities  # type: ignore[no-any-return]


def _describe(
    layer: layer_registry.Layer,
    capabilities: options.ServerCapabilities,
) -> dict[str, Any]:
    minzoom, maxzoom = capabilities.zoom_ranges.get(
        layer.name, (layer.minzoom, layer.maxzoom)
    )
    return {
        "name": layer.name,
        "description": layer.description,
        "minzoom": minzoom,
        "maxzoom": maxzoom,
        "backend": layer.backend.kind,
        "geometry_field": layer.backend.geometry_field,
    }


@router.get("")
async def list_layers(
    capabilities: options.ServerCapabilities = fastapi.Depends(_get_capabilities),  # noqa: B008
) -> list[dict[str, Any]]:
    """List all configured layers in configuration order."""
    return [_describe(layer, capabilities) for layer in capabilities.layers]


@router.get("/{name}")
async def get_layer(
    name: str,
    capabilities: options.ServerCapabilities = fastapi.Depends(_get_capabilities),  # noqa: B008
) -> dict[str, Any]:
    """Describe a single layer.

    Raises:
        HTTPException: If no layer has this name (404 status code).
    """
    layer = capabilities.layer(name)
    if layer is None:
        raise fastapi.HTTPException(status_code=404, detail="Layer not found")
    return _describe(layer, capabilities)
