"""
Deep entity extraction for provider documents

Providers bury the objects we care about (team records, games) at nesting
depths that change between feed versions. Instead of hard-coding key paths,
the normalizers search the whole decoded document for anything shaped like
the entity they want.
"""

import logging
from typing import Any, Callable, Dict, List, Set

logger = logging.getLogger(__name__)

MAX_DEPTH = 20

Predicate = Callable[[Dict[str, Any]], bool]


def deep_collect(root: Any, predicate: Predicate, max_depth: int = MAX_DEPTH) -> List[Dict[str, Any]]:
    """Return every object node under ``root`` accepted by ``predicate``.

    Nodes are returned in depth-first discovery order. Each container is
    visited once by identity, so shared or cyclic references neither loop
    forever nor produce duplicate matches. Nodes deeper than ``max_depth``
    levels below the root are not inspected.
    """
    found: List[Dict[str, Any]] = []
    seen: Set[int] = set()
    _walk(root, predicate, found, seen, 0, max_depth)
    return found


def _walk(node: Any, predicate: Predicate, found: List[Dict[str, Any]],
          seen: Set[int], depth: int, max_depth: int) -> None:
    if not isinstance(node, (dict, list)):
        return
    if id(node) in seen:
        return
    seen.add(id(node))
    if depth > max_depth:
        return

    if isinstance(node, list):
        for item in node:
            _walk(item, predicate, found, seen, depth + 1, max_depth)
        return

    if _accepts(predicate, node):
        found.append(node)

    for value in node.values():
        _walk(value, predicate, found, seen, depth + 1, max_depth)


def _accepts(predicate: Predicate, node: Dict[str, Any]) -> bool:
    try:
        return bool(predicate(node))
    except (TypeError, ValueError, AttributeError, KeyError) as e:
        logger.debug(f"Predicate rejected node after error: {e}")
        return False

