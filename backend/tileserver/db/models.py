"""Configuration document models.

The YAML configuration document describes an optional cache section and a
list of layers, each backed by exactly one data source. Parsing is strict:
unknown keys at any level and values of the wrong type are rejected, so a
typo'd key fails loudly instead of silently falling back to a default.
A null ``layers`` value is read as an empty list.

Example:
    A minimal document with one Elasticsearch layer:
        >>> text = '''
        ... layers:
        ...   - name: buildings
        ...     description: Building footprints
        ...     minzoom: 0
        ...     maxzoom: 14
        ...     elasticsearch:
        ...       host: localhost
        ...       port: 9200
        ...       index: buildings
        ...       geometryField: geometry
        ...       sourceFields: {height: building.height}
        ... '''
        >>> from tileserver.services import config_document
        >>> doc = config_document.load_config(text)
        >>> doc.layers[0].elasticsearch.index
        'buildings'
"""

from __future__ import annotations

import pydantic


class _StrictModel(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(
        extra="forbid",
        frozen=True,
    )


class CacheConfig(_StrictModel):
    """Cache section; its presence enables the tile cache."""

    server_address: pydantic.StrictStr = pydantic.Field(alias="serverAddress")


class ElasticsearchConfig(_StrictModel):
    """Elasticsearch backend descriptor.

    Attributes:
        host: Search cluster host name.
        port: Search cluster HTTP port.
        index: Index holding the layer's documents.
        geometry_field: Document field holding the geometry.
        source_fields: Feature attribute name -> document source field.
    """

    host: pydantic.StrictStr
    port: pydantic.StrictInt
    index: pydantic.StrictStr
    geometry_field: pydantic.StrictStr = pydantic.Field(alias="geometryField")
    source_fields: dict[pydantic.StrictStr, pydantic.StrictStr] = pydantic.Field(
        default_factory=dict, alias="sourceFields"
    )


class PostGISConfig(_StrictModel):
    """PostGIS backend descriptor.

    Attributes:
        dsn: libpq connection string.
        table: Table (optionally schema-qualified) to query.
        geometry_field: Geometry column; rows are decoded around it.
        source_fields: Feature attribute name -> table column.
    """

    dsn: pydantic.StrictStr
    table: pydantic.StrictStr
    geometry_field: pydantic.StrictStr = pydantic.Field(alias="geometryField")
    source_fields: dict[pydantic.StrictStr, pydantic.StrictStr] = pydantic.Field(
        default_factory=dict, alias="sourceFields"
    )


class LayerDocument(_StrictModel):
    """One layer entry; exactly one backend section must be set."""

    name: pydantic.StrictStr
    description: pydantic.StrictStr = ""
    minzoom: pydantic.StrictInt
    maxzoom: pydantic.StrictInt
    elasticsearch: ElasticsearchConfig | None = None
    postgis: PostGISConfig | None = None


class ConfigDocument(_StrictModel):
    """Top level of the configuration document."""

    cache: CacheConfig | None = None
    layers: list[LayerDocument] = pydantic.Field(default_factory=list)

    @pydantic.field_validator("layers", mode="before")
    @classmethod
    def null_layers_are_empty(cls, value: object) -> object:
        return [] if value is None else value
