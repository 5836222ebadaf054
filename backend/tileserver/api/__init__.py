"""API router subpackage for the tile server.

Each module exposes its own APIRouter for composition in the application's
main FastAPI instance. Routers read the assembled ServerCapabilities from
``app.state.capabilities``.

Submodules:
    - layers: Read-only listing of the configured layers.
"""
