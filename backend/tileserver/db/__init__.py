"""Data shapes shared by the server.

- models: strict pydantic models of the YAML configuration document.
- rows: capture strategies and the row-to-attribute-map decoding used by
  database-backed layers.

Example:
    >>> from tileserver.db import rows
    >>> features = rows.rows_to_maps(rows.CursorRowSource(cursor), "geom")
"""
