"""Deep get/set/unset on nested values.

This module resolves dotted/bracketed paths such as ``a.b[0]["c.d"]``
against JSON-compatible dict/list structures.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from core.errors import SheetKVPathError
from core.types import PathToken, Value

_BRACKET_PATTERN = re.compile(r"""\[\s*(?:(-?\d+)|"((?:[^"\\]|\\.)*)"|'((?:[^'\\]|\\.)*)')\s*\]""")
_INDEX_TEXT_PATTERN = re.compile(r"-?\d+")
_MISSING = object()


def is_nested(value: Any) -> bool:
    """Return whether a value is a nested structure (dict or list)."""
    return isinstance(value, (dict, list))


def parse_path(path: str | Sequence[PathToken]) -> tuple[PathToken, ...]:
    """Parse a path into tokens.

    Dotted segments become string tokens, ``[n]`` becomes an integer
    token, and quoted brackets keep dots and brackets inside a key.
    A sequence of tokens is accepted as already parsed.

    Args:
        path: Path string or token sequence.

    Returns:
        Non-empty token tuple.

    Raises:
        SheetKVPathError: If the path is empty or malformed.
    """
    if isinstance(path, str):
        tokens = _tokenize(path)
    else:
        tokens = tuple(path)
        for token in tokens:
            if isinstance(token, bool) or not isinstance(token, (str, int)):
                raise SheetKVPathError(
                    f"Invalid path token {token!r}: expected string or integer."
                )
    if not tokens:
        raise SheetKVPathError("Invalid path: expected at least one segment.")
    return tokens


def get_path(data: Value, path: Sequence[PathToken], default: Any = None) -> Any:
    """Resolve a path within a nested value.

    Args:
        data: Root value.
        path: Parsed path tokens.
        default: Returned when the path does not resolve.

    Returns:
        The sub-value or ``default``.
    """
    current = data
    for token in path:
        current = _child(current, token)
        if current is _MISSING:
            return default
    return current


def set_path(data: dict[str, Any] | list[Any], path: Sequence[PathToken], value: Value) -> Any:
    """Set a value at a path, creating missing containers.

    Missing intermediate containers are lists when the next token is
    an integer and dicts otherwise. Scalars in the way are replaced.
    Lists are padded with None up to the target index.

    Args:
        data: Root container, mutated in place.
        path: Parsed path tokens.
        value: Value to place at the path.

    Returns:
        The mutated root container.
    """
    current: Any = data
    for position, token in enumerate(path):
        is_last = position == len(path) - 1
        if is_last:
            _assign(current, token, value)
            break
        child = _child(current, token)
        if not is_nested(child):
            child = [] if _is_index(path[position + 1]) else {}
            _assign(current, token, child)
        current = child
    return data


def unset_path(data: dict[str, Any] | list[Any], path: Sequence[PathToken]) -> bool:
    """Remove the field at a path.

    List elements are removed, shifting later elements down.

    Args:
        data: Root container, mutated in place.
        path: Parsed path tokens.

    Returns:
        Whether anything was removed.
    """
    parent = get_path(data, path[:-1], _MISSING) if len(path) > 1 else data
    if parent is _MISSING or not is_nested(parent):
        return False
    token = path[-1]
    if isinstance(parent, dict):
        dict_key = _dict_key(token)
        if dict_key not in parent:
            return False
        del parent[dict_key]
        return True
    index = _list_index(parent, token)
    if index is None:
        return False
    del parent[index]
    return True


def _tokenize(path: str) -> tuple[PathToken, ...]:
    tokens: list[PathToken] = []
    position = 0
    expect_segment = True
    while position < len(path):
        character = path[position]
        if character == "[":
            match = _BRACKET_PATTERN.match(path, position)
            if match is None:
                raise SheetKVPathError(
                    f"Invalid path '{path}': unterminated or malformed bracket at {position}."
                )
            index_text, double_quoted, single_quoted = match.groups()
            if index_text is not None:
                tokens.append(int(index_text))
            else:
                quoted = double_quoted if double_quoted is not None else single_quoted
                tokens.append(re.sub(r"\\(.)", r"\1", quoted))
            position = match.end()
            expect_segment = False
            continue
        if character == ".":
            if expect_segment:
                raise SheetKVPathError(f"Invalid path '{path}': empty segment at {position}.")
            position += 1
            expect_segment = True
            continue
        end = position
        while end < len(path) and path[end] not in ".[":
            end += 1
        tokens.append(path[position:end])
        position = end
        expect_segment = False
    if expect_segment and tokens:
        raise SheetKVPathError(f"Invalid path '{path}': trailing dot.")
    return tuple(tokens)


def _child(container: Any, token: PathToken) -> Any:
    if isinstance(container, dict):
        return container.get(_dict_key(token), _MISSING)
    if isinstance(container, list):
        index = _list_index(container, token)
        return _MISSING if index is None else container[index]
    return _MISSING


def _assign(container: Any, token: PathToken, value: Any) -> None:
    if isinstance(container, dict):
        container[_dict_key(token)] = value
        return
    index = _index_value(token)
    if index is None:
        raise SheetKVPathError(f"Cannot set field '{token}' on a list: expected an index.")
    if index < 0:
        resolved = _list_index(container, index)
        if resolved is None:
            raise SheetKVPathError(f"List index {index} is out of range.")
        container[resolved] = value
        return
    if index >= len(container):
        container.extend([None] * (index + 1 - len(container)))
    container[index] = value


def _list_index(container: list[Any], token: PathToken) -> int | None:
    index = _index_value(token)
    if index is not None and -len(container) <= index < len(container):
        return index % len(container)
    return None


def _index_value(token: PathToken) -> int | None:
    if _is_index(token):
        return int(token)
    if isinstance(token, str) and _INDEX_TEXT_PATTERN.fullmatch(token):
        return int(token)
    return None


def _dict_key(token: PathToken) -> str:
    # JSON objects only have string keys.
    return token if isinstance(token, str) else str(token)


def _is_index(token: PathToken) -> bool:
    return isinstance(token, int) and not isinstance(token, bool)
