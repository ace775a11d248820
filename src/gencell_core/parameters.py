# src/gencell_core/parameters.py
"""
The ordered parameter dictionary used for every generator configuration.

A ParameterDictionary is the unit that is merged with defaults, validated by a
generator's `check` capability, hashed into an artifact name and persisted as
artifact metadata. Its iteration order is significant: the content hash walks
the values in this order, so two dictionaries holding the same pairs in a
different order may produce different artifact names.
"""
import logging
from collections.abc import MutableMapping
from typing import Any, Iterable, Iterator, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

#: Parameter that redirects a request to a different generator type.
GENCELL_KEY = "gencell"
#: Parameter whose presence in a generator's defaults marks it as non-cell.
NOCELL_KEY = "nocell"
#: SPICE multiplicity parameter.
MULTIPLICITY_KEY = "m"

RESERVED_KEYS = frozenset({GENCELL_KEY, NOCELL_KEY, MULTIPLICITY_KEY})

ParameterSource = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]


class ParameterDictionary(MutableMapping):
    """
    An insertion-ordered mapping of parameter names to opaque string values.

    Values are stored as strings. The reserved keys `gencell`, `nocell` and `m`
    are matched case-insensitively, so `params["M"]` finds a value stored
    under `m` (and assigning `params["M"]` replaces it in place).
    """

    def __init__(self, source: ParameterSource = None, **kwargs: Any):
        self._data: dict = {}
        if source is not None:
            self.update(source)
        if kwargs:
            self.update(kwargs)

    def _resolve_key(self, key: str) -> str:
        if key in self._data:
            return key
        lowered = key.lower()
        if lowered in RESERVED_KEYS:
            for existing in self._data:
                if existing.lower() == lowered:
                    return existing
        return key

    def __getitem__(self, key: str) -> str:
        return self._data[self._resolve_key(key)]

    def __setitem__(self, key: str, value: Any) -> None:
        if not isinstance(key, str) or not key:
            raise TypeError(f"Parameter names must be non-empty strings, got {key!r}.")
        self._data[self._resolve_key(key)] = str(value)

    def __delitem__(self, key: str) -> None:
        del self._data[self._resolve_key(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self._resolve_key(key) in self._data

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ParameterDictionary):
            return list(self._data.items()) == list(other._data.items())
        if isinstance(other, Mapping):
            return self == ParameterDictionary(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"ParameterDictionary({self._data!r})"

    def copy(self) -> "ParameterDictionary":
        return ParameterDictionary(self._data)

    def values_in_order(self) -> Tuple[str, ...]:
        return tuple(self._data.values())

    def without(self, *keys: str) -> "ParameterDictionary":
        """Returns a copy with the given keys (if present) removed."""
        result = self.copy()
        for key in keys:
            if key in result:
                del result[key]
        return result

    def to_dict(self) -> dict:
        """Plain-dict view for serialization; insertion order is kept."""
        return dict(self._data)


def merge_parameters(base: ParameterSource, override: ParameterSource) -> ParameterDictionary:
    """
    Merges `override` over `base`; the override's value wins on key collision.

    The result holds base's keys in base order (with overridden values), followed
    by keys present only in `override`, in override order. No key from either
    operand is dropped.
    """
    merged = ParameterDictionary(base)
    if override is not None:
        merged.update(ParameterDictionary(override))
    return merged


def get_multiplicity(parameters: Optional[Mapping[str, Any]], default: int = 1) -> int:
    """
    Interprets the reserved `m` parameter as an integer repetition count.

    Tries a direct integer parse, then a float parse, then both again on the
    value stripped of surrounding single quotes. Anything else yields `default`.
    """
    if not parameters or MULTIPLICITY_KEY not in ParameterDictionary(parameters):
        return default
    raw = str(ParameterDictionary(parameters)[MULTIPLICITY_KEY]).strip()
    for candidate in (raw, raw.strip("'")):
        try:
            return int(candidate)
        except ValueError:
            pass
        try:
            return int(float(candidate))
        except (ValueError, OverflowError):
            pass
    logger.warning(f"Could not interpret multiplicity '{raw}'; using {default}.")
    return default
