"""Server assembly from an ordered list of configuration options.

Each option is an immutable descriptor (``Port(8080)``, ``CacheServer(
"redis:6379")``, ...) that knows how to apply itself to a ServerBuilder.
assemble() folds the options left to right over a zero-valued builder and
freezes the result into ServerCapabilities, the read-only state shared by
all request handlers afterwards.

Options are applied strictly in the given order, and the order matters:
a later ``CacheServer("")`` keeps an earlier cache client, while a later
non-empty address replaces it. Assembly stops at the first failing option;
deliberate errors (ConfigParseError, OptionApplicationError) propagate as
they are and anything else a step raises is wrapped in
OptionApplicationError. Client handles attached before the failure are
closed, since the partial builder is never handed out.

Example:
    Build the capabilities for a server with a cache and one config file:
        >>> from tileserver.core import options
        >>> caps = options.assemble([
        ...     options.ConfigFile(pathlib.Path("tileserver.yml")),
        ...     options.Port(3000),
        ...     options.EnableCORS(),
        ...     options.CacheServer("localhost:6379"),
        ...     options.CacheTTL("5m"),
        ... ])
        >>> caps.cache_ttl
        datetime.timedelta(seconds=300)
        >>> caps.close()
"""

from __future__ import annotations

import dataclasses
import logging
import pathlib
import types
from typing import TYPE_CHECKING, Any, Protocol

from tileserver import errors
from tileserver.services import cache, config_document, search
from tileserver.services import layers as layer_registry
from tileserver.utils import durations

if TYPE_CHECKING:
    import datetime
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

ZoomRange = tuple[int, int]

_MAX_PORT = 65535


def parse_zoom_range(text: str) -> ZoomRange:
    """Parse ``"<min>"`` or ``"<min>-<max>"`` into zoom bounds.

    Parts that are not integers are ignored and leave the corresponding
    bound at MIN_ZOOM / MAX_ZOOM. More than two parts only set the minimum.

    Example:
        >>> parse_zoom_range("5-12")
        (5, 12)
        >>> parse_zoom_range("7")
        (7, 22)
        >>> parse_zoom_range("abc-12")
        (0, 12)
    """
    min_zoom, max_zoom = layer_registry.MIN_ZOOM, layer_registry.MAX_ZOOM
    parts = text.split("-")
    try:
        min_zoom = int(parts[0])
    except ValueError:
        logger.warning("Ignoring invalid minimum zoom in %r", text)
    if len(parts) == 2:
        try:
            max_zoom = int(parts[1])
        except ValueError:
            logger.warning("Ignoring invalid maximum zoom in %r", text)
    return min_zoom, max_zoom


@dataclasses.dataclass(frozen=True)
class ServerCapabilities:
    """Assembled server configuration and client handles.

    Treated as read-only once assembled; mapping fields are read-only views
    and layers is a tuple. close() releases every client handle and is
    meant to run once, at shutdown.
    """

    port: int
    internal_port: int
    enable_cors: bool
    simplify: bool
    cache_client: Any | None
    cache_control: str | None
    cache_ttl: datetime.timedelta | None
    search_client: Any | None
    search_field_mappings: Mapping[str, str]
    zoom_ranges: Mapping[str, ZoomRange]
    layers: tuple[layer_registry.Layer, ...]

    def layer(self, name: str) -> layer_registry.Layer | None:
        """Return the layer called ``name``, or None if there is none.

        Example:
            >>> caps.layer("buildings").backend.kind
            'elasticsearch'
        """
        return next((lyr for lyr in self.layers if lyr.name == name), None)

    def close(self) -> None:
        """Close the cache, search and layer backend clients."""
        _close_clients(self.cache_client, self.search_client, self.layers)


@dataclasses.dataclass
class ServerBuilder:
    """Mutable, zero-valued state the options are applied to."""

    port: int = 0
    internal_port: int = 0
    enable_cors: bool = False
    simplify: bool = False
    cache_client: Any | None = None
    cache_control: str | None = None
    cache_ttl: datetime.timedelta | None = None
    search_client: Any | None = None
    search_field_mappings: dict[str, str] = dataclasses.field(
        default_factory=dict
    )
    zoom_ranges: dict[str, ZoomRange] = dataclasses.field(default_factory=dict)
    layers: list[layer_registry.Layer] = dataclasses.field(default_factory=list)

    def attach_cache_client(self, client: Any) -> None:
        """Attach ``client``, closing the cache client it replaces."""
        previous, self.cache_client = self.cache_client, client
        if previous is not None and previous is not client:
            previous.close()

    def build(self) -> ServerCapabilities:
        """Freeze the builder into ServerCapabilities.

        Mappings are copied into read-only views and layers into a tuple, so
        later changes to the builder do not leak into the result.
        """
        return ServerCapabilities(
            port=self.port,
            internal_port=self.internal_port,
            enable_cors=self.enable_cors,
            simplify=self.simplify,
            cache_client=self.cache_client,
            cache_control=self.cache_control,
            cache_ttl=self.cache_ttl,
            search_client=self.search_client,
            search_field_mappings=types.MappingProxyType(
                dict(self.search_field_mappings)
            ),
            zoom_ranges=types.MappingProxyType(dict(self.zoom_ranges)),
            layers=tuple(self.layers),
        )

    def close(self) -> None:
        """Close the clients attached so far."""
        _close_clients(self.cache_client, self.search_client, self.layers)


def _close_clients(
    cache_client: Any | None,
    search_client: Any | None,
    server_layers: Iterable[layer_registry.Layer],
) -> None:
    if cache_client is not None:
        cache_client.close()
    if search_client is not None:
        search_client.close()
    for layer in server_layers:
        layer.backend.close()


class ConfigOption(Protocol):
    """A single step of server assembly."""

    def apply(self, builder: ServerBuilder) -> None: ...


@dataclasses.dataclass(frozen=True)
class ConfigFile:
    """Load layers (and an optional cache section) from a YAML document.

    ``source`` is a path, the document text or bytes, or an open file.
    """

    source: pathlib.Path | config_document.ConfigSource

    def apply(self, builder: ServerBuilder) -> None:
        if isinstance(self.source, pathlib.Path):
            with self.source.open("rb") as fh:
                document = config_document.load_config(fh)
        else:
            document = config_document.load_config(self.source)

        seen: set[str] = set()
        for layer_document in document.layers:
            if layer_document.name in seen:
                raise errors.OptionApplicationError(
                    self, f"duplicate layer name {layer_document.name!r}"
                )
            seen.add(layer_document.name)

        new_layers = [
            layer_registry.create_layer(doc) for doc in document.layers
        ]
        for layer in builder.layers:
            layer.backend.close()
        builder.layers = new_layers
        logger.info("Configured %d layers", len(new_layers))
        if document.cache is not None:
            builder.attach_cache_client(
                cache.create_cache_client(document.cache.server_address)
            )


@dataclasses.dataclass(frozen=True)
class Port:
    """Port used for serving tile data."""

    port: int

    def apply(self, builder: ServerBuilder) -> None:
        builder.port = _check_port(self, self.port)


@dataclasses.dataclass(frozen=True)
class InternalPort:
    """Port used for administrative endpoints such as the health check."""

    port: int

    def apply(self, builder: ServerBuilder) -> None:
        builder.internal_port = _check_port(self, self.port)


def _check_port(option: ConfigOption, port: int) -> int:
    if isinstance(port, bool) or not isinstance(port, int):
        raise errors.OptionApplicationError(option, f"invalid port {port!r}")
    if not 0 < port <= _MAX_PORT:
        raise errors.OptionApplicationError(option, f"port out of range: {port}")
    return port


@dataclasses.dataclass(frozen=True)
class EnableCORS:
    """Serve responses with CORS (cross-origin resource sharing) enabled."""

    def apply(self, builder: ServerBuilder) -> None:
        builder.enable_cors = True


@dataclasses.dataclass(frozen=True)
class SimplifyShapes:
    """Simplify geometries according to the requested zoom level."""

    def apply(self, builder: ServerBuilder) -> None:
        builder.simplify = True


@dataclasses.dataclass(frozen=True)
class CacheControl:
    """Fixed value for the Cache-Control response header."""

    value: str

    def apply(self, builder: ServerBuilder) -> None:
        builder.cache_control = self.value


@dataclasses.dataclass(frozen=True)
class CacheServer:
    """Redis cache address (``host:port``); empty keeps the current client."""

    address: str

    def apply(self, builder: ServerBuilder) -> None:
        if self.address:
            builder.attach_cache_client(cache.create_cache_client(self.address))


@dataclasses.dataclass(frozen=True)
class CacheTTL:
    """Cache time-to-live as a duration string; empty leaves it unset."""

    value: str

    def apply(self, builder: ServerBuilder) -> None:
        if self.value:
            builder.cache_ttl = durations.parse_duration(self.value)


@dataclasses.dataclass(frozen=True)
class SearchHost:
    """``host:port`` of the Elasticsearch backend."""

    host: str

    def apply(self, builder: ServerBuilder) -> None:
        client = search.create_search_client(self.host)
        if builder.search_client is not None:
            builder.search_client.close()
        builder.search_client = client


@dataclasses.dataclass(frozen=True)
class SearchMappings:
    """Index name -> geometry field name; replaces any earlier mapping."""

    mappings: Mapping[str, str]

    def apply(self, builder: ServerBuilder) -> None:
        builder.search_field_mappings = dict(self.mappings)


@dataclasses.dataclass(frozen=True)
class ZoomRanges:
    """Feature type -> ``"<min>"`` or ``"<min>-<max>"``, replacing earlier ranges."""

    ranges: Mapping[str, str]

    def apply(self, builder: ServerBuilder) -> None:
        builder.zoom_ranges = {
            feature_type: parse_zoom_range(text)
            for feature_type, text in self.ranges.items()
        }


def assemble(options: Iterable[ConfigOption]) -> ServerCapabilities:
    """Apply ``options`` in order to a zero-valued builder.

    Args:
        options: Assembly steps, applied left to right.

    Returns:
        The frozen server capabilities.

    Raises:
        ConfigParseError: If a configuration document is invalid.
        OptionApplicationError: If any other step fails. No later steps run.
    """
    builder = ServerBuilder()
    for option in options:
        logger.debug("Applying %r", option)
        try:
            option.apply(builder)
        except errors.TileServerError:
            builder.close()
            raise
        except Exception as exc:
            builder.close()
            raise errors.OptionApplicationError(option, str(exc)) from exc
    return builder.build()
