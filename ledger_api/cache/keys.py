"""Cache key generation for consistent, deterministic cache keys.

This module provides the CacheKeyGenerator class for building readable,
colon-delimited cache keys from a namespace and discriminating arguments,
and the wildcard patterns used to invalidate whole key families.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Mapping

import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)

DELIMITER = ":"
WILDCARD = "*"
# Sentinel tokens are "%" followed by a letter. escape_token() only emits
# "%" followed by a digit, so no escaped value can spell one.
NULL_TOKEN = "%null"
TRUE_TOKEN = "%true"
FALSE_TOKEN = "%false"
ANONYMOUS = "%anonymous"
RESPONSE_NAMESPACE = "api_cache"

# Percent-escape the delimiter and glob metacharacters inside tokens.
_ESCAPES = {
    "%": "%25",
    ":": "%3A",
    "*": "%2A",
    "?": "%3F",
    "[": "%5B",
    "]": "%5D",
    "\\": "%5C",
}
_ESCAPE_TABLE = str.maketrans(_ESCAPES)


def _canonical(value: Any) -> Any:
    """Reduce a structured value to plain JSON types with a stable order."""
    if isinstance(value, BaseModel):
        return _canonical(value.model_dump(mode="json"))
    if isinstance(value, Enum):
        return _canonical(value.value)
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((_canonical(v) for v in value), key=lambda v: json.dumps(v, sort_keys=True))
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def escape_token(token: str) -> str:
    """Escape the delimiter and glob metacharacters in a single key token."""
    return token.translate(_ESCAPE_TABLE)


def unescape_token(token: str) -> str:
    """Reverse escape_token()."""
    result = token
    for raw, escaped in _ESCAPES.items():
        if raw != "%":
            result = result.replace(escaped, raw)
    return result.replace("%25", "%")


def serialize_arg(arg: Any) -> str:
    """
    Turn one key argument into its canonical (unescaped) string form.

    Args:
        arg: Any key argument (scalar, mapping, sequence, pydantic model)

    Returns:
        Canonical string: compact sorted JSON for structured values,
        ``str()`` otherwise. None and booleans never reach this function
        as top-level arguments; encode_arg() maps them to sentinel tokens.

    Example:
        >>> serialize_arg({"b": 2, "a": 1})
        '{"a":1,"b":2}'
    """
    if isinstance(arg, (BaseModel, Mapping, list, tuple, set, frozenset)):
        return json.dumps(
            _canonical(arg), sort_keys=True, separators=(",", ":"), default=str
        )
    if isinstance(arg, Enum):
        return serialize_arg(arg.value)
    return str(arg)


_SENTINEL_VALUES = {NULL_TOKEN: None, TRUE_TOKEN: True, FALSE_TOKEN: False}


def encode_arg(arg: Any) -> str:
    """
    Serialize and escape one key argument into a single token.

    Tokens are injective per argument type: None and booleans get sentinel
    tokens, so ``None`` and ``"null"`` never share a key. A number and its
    decimal string do share a token; every key family uses one type per
    position.
    """
    if isinstance(arg, Enum):
        return encode_arg(arg.value)
    if arg is None:
        return NULL_TOKEN
    if isinstance(arg, bool):
        return TRUE_TOKEN if arg else FALSE_TOKEN
    return escape_token(serialize_arg(arg))


def decode_token(token: str) -> Any:
    """Reverse encode_arg() for scalar tokens: sentinels become None or booleans."""
    if token in _SENTINEL_VALUES:
        return _SENTINEL_VALUES[token]
    return unescape_token(token)


def canonical_query(params: Any) -> Dict[str, Any]:
    """
    Collapse query parameters into a canonical mapping.

    Accepts a plain mapping or any object exposing ``multi_items()``
    (starlette's QueryParams). Repeated parameters become sorted lists.
    """
    items = params.multi_items() if hasattr(params, "multi_items") else list(params.items())
    grouped: Dict[str, List[str]] = {}
    for name, value in items:
        grouped.setdefault(str(name), []).append(str(value))
    return {
        name: values[0] if len(values) == 1 else sorted(values)
        for name, values in sorted(grouped.items())
    }


def _requester_token(requester: Any) -> str:
    # A blank or missing identity is anonymous; a requester named "anonymous" is not
    return encode_arg(requester) if requester else ANONYMOUS


class CacheKeyGenerator:
    """
    Generate consistent cache keys for ledger resources.

    Keys follow the pattern ``{namespace}:{arg1}:{arg2}:...``. Each
    argument is serialized canonically and escaped, so equal argument
    sequences always produce equal keys and distinct sequences of the
    same argument types never collide. Namespaces are developer
    constants and are used verbatim.
    """

    @staticmethod
    def build(namespace: str, *args: Any) -> str:
        """
        Build cache key from a namespace and discriminating arguments.

        Args:
            namespace: Key family (e.g., "user_accounts")
            *args: Resource ids, scope and query discriminators

        Returns:
            Cache key string

        Example:
            >>> CacheKeyGenerator.build("user_accounts", "u1", 1, 10, None, "createdAt")
            'user_accounts:u1:1:10:%null:createdAt'
        """
        tokens = [encode_arg(arg) for arg in args]
        cache_key = DELIMITER.join([namespace, *tokens])

        logger.debug("cache_key_generated", namespace=namespace, cache_key=cache_key)

        return cache_key

    @staticmethod
    def pattern(namespace: str, *scope: Any) -> str:
        """
        Build a wildcard pattern covering every key under a scope.

        Example:
            >>> CacheKeyGenerator.pattern("user_accounts", "u1")
            'user_accounts:u1:*'
        """
        return f"{CacheKeyGenerator.build(namespace, *scope)}{DELIMITER}{WILDCARD}"

    @staticmethod
    def response_key(path: str, query: Any, requester: Any = None) -> str:
        """
        Default key for the response-caching middleware.

        Args:
            path: Request path without query string
            query: Query parameters (mapping or QueryParams)
            requester: Requester identity; the ANONYMOUS sentinel when missing
        """
        cache_key = CacheKeyGenerator.build(RESPONSE_NAMESPACE, path, canonical_query(query))
        return f"{cache_key}{DELIMITER}{_requester_token(requester)}"

    @staticmethod
    def response_pattern(path_prefix: str, requester: Any = None) -> str:
        """
        Pattern matching one requester's cached responses under a path prefix.

        Example:
            >>> CacheKeyGenerator.response_pattern("/api/accounts", "u1")
            'api_cache:/api/accounts*:u1'
        """
        prefix = CacheKeyGenerator.build(RESPONSE_NAMESPACE, path_prefix)
        return f"{prefix}{WILDCARD}{DELIMITER}{_requester_token(requester)}"

    @staticmethod
    def parse(cache_key: str) -> Dict[str, Any]:
        """
        Parse cache key back to components.

        Args:
            cache_key: Cache key string to parse

        Returns:
            Dictionary with ``namespace`` and unescaped ``args``

        Raises:
            ValueError: If the key has no namespace

        Example:
            >>> CacheKeyGenerator.parse("account:42:u1")
            {'namespace': 'account', 'args': ['42', 'u1']}
        """
        parts = cache_key.split(DELIMITER)

        if not parts[0]:
            raise ValueError(f"Invalid cache key format: {cache_key!r}. Missing namespace")

        return {
            "namespace": parts[0],
            "args": [decode_token(part) for part in parts[1:]],
        }

