"""Redis tile cache client construction."""

from __future__ import annotations

import logging

import redis

logger = logging.getLogger(__name__)


def create_cache_client(address: str) -> redis.Redis:
    """Return a Redis client bound to ``address`` (``host:port``).

    The client connects lazily, so construction never touches the network.
    """
    logger.info("Using cache server at %s", address)
    return redis.Redis.from_url(f"redis://{address}")
