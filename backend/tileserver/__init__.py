"""Tile server core package.

This package holds the parts of the tile server that turn loosely typed
external input into strongly typed internal state:

- Query results are decoded row by row into attribute maps, with the
  layer's geometry column decoded from WKB into shapely geometries. A single
  undecodable geometry fails the whole result set.
- A strict YAML configuration document describes the cache and the layers,
  each backed by Elasticsearch or PostGIS.
- Server capabilities are assembled once at startup from an ordered list of
  immutable options and are read-only afterwards.

Tile encoding and request routing live outside this package.
"""
