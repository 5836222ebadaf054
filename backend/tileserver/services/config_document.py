"""YAML configuration document loader.

load_config parses a configuration document and validates it against the
strict models in tileserver.db.models. Every failure (YAML syntax errors,
an empty document, repeated keys, unknown keys, wrong value types, missing
layer fields) is reported as ConfigParseError with the line and column of
the offending node, so a bad configuration stops the server before any
backend client is constructed.

Example:
    Load a configuration file:
        >>> from tileserver.services import config_document
        >>> with open("tileserver.yml", "rb") as fh:
        ...     doc = config_document.load_config(fh)
        >>> [layer.name for layer in doc.layers]
        ['buildings']
"""

from __future__ import annotations

import logging
from typing import IO, TYPE_CHECKING

import pydantic
import yaml

from tileserver import errors
from tileserver.db import models

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

ConfigSource = str | bytes | IO[str] | IO[bytes]


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects a key repeated within one mapping."""

    def construct_mapping(
        self, node: yaml.MappingNode, deep: bool = False
    ) -> dict[object, object]:
        seen: set[object] = set()
        for key_node, _ in node.value:
            if not isinstance(key_node, yaml.ScalarNode):
                continue
            if key_node.tag == "tag:yaml.org,2002:merge":
                continue
            key = self.construct_object(key_node, deep=deep)
            if key in seen:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    f"found duplicate key {key!r}",
                    key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _read(source: ConfigSource) -> str:
    data = source if isinstance(source, str | bytes) else source.read()
    if isinstance(data, bytes):
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise errors.ConfigParseError(
                f"configuration is not valid UTF-8: {exc}"
            ) from exc
    return data


def _find_node(
    root: yaml.Node | None,
    location: Sequence[str | int],
) -> yaml.Node | None:
    """Walk a composed YAML node tree along a pydantic error location.

    Returns the deepest node reached; for unknown keys that is the key node.
    """
    node = root
    last = len(location) - 1
    for depth, part in enumerate(location):
        if isinstance(node, yaml.MappingNode):
            match = next(
                ((k, v) for k, v in node.value if k.value == str(part)),
                None,
            )
            if match is None:
                break
            key_node, value_node = match
            node = key_node if depth == last else value_node
        elif isinstance(node, yaml.SequenceNode) and isinstance(part, int):
            if part >= len(node.value):
                break
            node = node.value[part]
        else:
            break
    return node


def _validation_error(
    text: str,
    exc: pydantic.ValidationError,
) -> errors.ConfigParseError:
    first = exc.errors()[0]
    location = tuple(first["loc"])
    node = _find_node(yaml.compose(text, Loader=yaml.SafeLoader), location)
    line = column = None
    if node is not None:
        line = node.start_mark.line + 1
        column = node.start_mark.column + 1
    message = first["msg"]
    if exc.error_count() > 1:
        message = f"{message} (and {exc.error_count() - 1} more errors)"
    return errors.ConfigParseError(message, line, column, location)


def load_config(source: ConfigSource) -> models.ConfigDocument:
    """Parse and validate a configuration document.

    Args:
        source: Document text, raw bytes or an open file object.

    Returns:
        Validated, immutable ConfigDocument.

    Raises:
        ConfigParseError: If the document is not valid YAML, is empty, is
            not a mapping, or does not match the schema.
    """
    text = _read(source)
    try:
        data = yaml.load(text, Loader=_UniqueKeyLoader)  # noqa: S506
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        problem = getattr(exc, "problem", None) or str(exc)
        if mark is None:
            raise errors.ConfigParseError(problem) from exc
        raise errors.ConfigParseError(
            problem, mark.line + 1, mark.column + 1
        ) from exc

    if data is None:
        raise errors.ConfigParseError("configuration document is empty")
    if not isinstance(data, dict):
        raise errors.ConfigParseError(
            "configuration document must be a mapping", 1, 1
        )

    try:
        document = models.ConfigDocument.model_validate(data)
    except pydantic.ValidationError as exc:
        raise _validation_error(text, exc) from exc

    logger.debug("Loaded config: %r", document)
    return document
