"""Elasticsearch clients and the Elasticsearch layer backend.

create_search_client builds the server-wide search client used for feature
lookups: it talks HTTP with compression enabled and must pass a health check
at startup, otherwise the client is closed and discarded and the error is
raised to the caller.

ElasticsearchBackend is the runtime form of an ``elasticsearch`` layer
section. Its client is only constructed the first time it is needed.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, ClassVar

import elasticsearch

if TYPE_CHECKING:
    from tileserver.db import models

logger = logging.getLogger(__name__)

# Seconds to wait for the startup health check.
SEARCH_HEALTHCHECK_TIMEOUT = 30.0


def create_search_client(host: str) -> elasticsearch.Elasticsearch:
    """Connect to the search backend at ``http://<host>``.

    Args:
        host: ``host:port`` of the search cluster.

    Returns:
        A client that answered its startup health check.

    Raises:
        ConnectionError: If the cluster does not answer the health check.
        ValueError: If ``host`` does not form a valid URL.
    """
    url = f"http://{host}"
    client = elasticsearch.Elasticsearch(url, http_compress=True)
    healthy = False
    try:
        healthy = client.options(
            request_timeout=SEARCH_HEALTHCHECK_TIMEOUT
        ).ping()
    finally:
        if not healthy:
            client.close()
    if not healthy:
        raise ConnectionError(f"search backend at {url} failed its health check")
    logger.info("Connected to search backend at %s", url)
    return client


class ElasticsearchBackend:
    """Layer backend reading features from an Elasticsearch index."""

    kind: ClassVar[str] = "elasticsearch"

    def __init__(self, config: models.ElasticsearchConfig) -> None:
        if not config.index:
            raise ValueError("elasticsearch backend requires an index")
        if not config.geometry_field:
            raise ValueError("elasticsearch backend requires a geometryField")
        self.config = config
        self._client: elasticsearch.Elasticsearch | None = None
        self._lock = threading.Lock()

    @property
    def geometry_field(self) -> str:
        return self.config.geometry_field

    @property
    def url(self) -> str:
        return f"http://{self.config.host}:{self.config.port}"

    @property
    def client(self) -> elasticsearch.Elasticsearch:
        """Search client for this layer, created on first access."""
        with self._lock:
            if self._client is None:
                logger.info(
                    "Creating search client for index %s at %s",
                    self.config.index,
                    self.url,
                )
                self._client = elasticsearch.Elasticsearch(
                    self.url, http_compress=True
                )
            return self._client

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None
