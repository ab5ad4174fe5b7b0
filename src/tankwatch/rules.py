"""
Field resolver rules shared by the normalizers

Each canonical field is described by an ordered list of rules. A rule is a
small pure function from a raw provider object to an optional value; the
first rule that yields a value wins. Keeping provider quirks in these lists
means a renamed key is a one-line change rather than a new code path.

Handles:
- Dot-path lookups with list indexing ("competitions[0].status")
- Named stat lookups for providers that ship records as lists of
  {"name": ..., "value": ...} objects
- Coercion of loosely typed JSON scalars (numbers as strings, blanks)
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

Resolver = Callable[[Any], Any]


@dataclass(frozen=True)
class FieldRule:
    """One way of reading a canonical field out of a raw object"""
    label: str
    resolve: Resolver

    def __call__(self, obj: Any) -> Any:
        try:
            return self.resolve(obj)
        except (TypeError, ValueError, AttributeError, KeyError, IndexError) as e:
            logger.debug(f"Rule {self.label} failed: {e}")
            return None


def first_of(obj: Any, rules: Sequence[FieldRule], coerce: Optional[Callable[[Any], Any]] = None) -> Any:
    """Return the first non-empty value produced by ``rules``

    With ``coerce``, a raw value only counts once it coerces to something
    other than None, and the coerced value is returned.
    """
    for rule in rules:
        value = rule(obj)
        if coerce is not None and not is_blank(value):
            value = coerce(value)
        if not is_blank(value):
            return value
    return None


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def extract_path(data: Any, path: str) -> Any:
    """Extract value from nested data using dot notation path"""
    if not path or data is None:
        return data

    current = data
    for part in path.split('.'):
        if current is None:
            return None

        if '[' in part and part.endswith(']'):
            name, index_str = part[:-1].split('[', 1)
            if name:
                current = current.get(name) if isinstance(current, dict) else None
            if not isinstance(current, list):
                return None
            try:
                index = int(index_str)
            except ValueError:
                return None
            if not 0 <= index < len(current):
                return None
            current = current[index]
        elif isinstance(current, dict):
            current = current.get(part)
        else:
            return None

    return current


def key(path: str) -> FieldRule:
    """Rule reading a (possibly dotted) key path"""
    return FieldRule(path, lambda obj: extract_path(obj, path))


def stat(*names: str, fields: Sequence[str] = ('value', 'displayValue')) -> FieldRule:
    """Rule reading a named entry from a ``stats`` list

    Matches an entry whose ``name``, ``type`` or ``abbreviation`` equals one
    of ``names`` (case-insensitive) and returns its first non-empty field.
    """
    wanted = {n.lower() for n in names}

    def resolve(obj: Any) -> Any:
        stats = obj.get('stats') if isinstance(obj, dict) else None
        if not isinstance(stats, list):
            return None
        for entry in stats:
            if not isinstance(entry, dict):
                continue
            labels = {str(entry.get(k, '')).lower() for k in ('name', 'type', 'abbreviation')}
            if labels & wanted:
                for field_name in fields:
                    value = entry.get(field_name)
                    if not is_blank(value):
                        return value
        return None

    return FieldRule(f"stat:{'|'.join(names)}", resolve)


def keys(*paths: str) -> List[FieldRule]:
    return [key(p) for p in paths]


def to_number(value: Any) -> Optional[float]:
    """Coerce a JSON scalar to a finite float, or None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def to_count(value: Any) -> Optional[int]:
    """Coerce a JSON scalar to a non-negative integer count, or None"""
    number = to_number(value)
    if number is None or number < 0 or number != int(number):
        return None
    return int(number)


def to_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def any_present(obj: Dict[str, Any], rule_sets: Iterable[Sequence[FieldRule]]) -> bool:
    """True if any rule list resolves to a value on ``obj``"""
    return any(first_of(obj, rules) is not None for rules in rule_sets)
