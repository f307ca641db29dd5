"""
Shared bookkeeping that keeps one logical tool call from being emitted twice.

A model may represent the same call as structured deltas *and* as inline
text.  Every emitter claims a call here before reporting it; a failed claim
means the call was already surfaced.
"""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)

STRUCTURED = "structured"
INLINE = "inline"


def canonical_key(name: str, arguments: dict) -> str:
    """``name:<compact JSON>``.  Key order is preserved, not sorted."""
    return f"{name}:{json.dumps(arguments, separators=(',', ':'), ensure_ascii=False)}"


class EmittedToolCalls:
    """The per-request dedup sets: canonical keys and ``name:ref`` ids."""

    def __init__(self) -> None:
        self._keys: dict[str, str] = {}
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._keys)

    def claim(
        self,
        name: str,
        arguments: dict,
        refs: tuple[str, ...] = (),
        source: str = INLINE,
    ) -> bool:
        """
        Record a call about to be emitted.  Returns ``False`` for a duplicate.

        *refs* are stream indices or explicit ids.  A call is a duplicate when
        any ``name:ref`` was claimed before, or when its canonical key was
        claimed by the other encoding or without any ref.
        """
        key = canonical_key(name, arguments)
        id_keys = [f"{name}:{r}" for r in refs]

        if any(k in self._ids for k in id_keys):
            logger.debug("Suppressing duplicate tool call %s (ref)", key[:200])
            return False
        owner = self._keys.get(key)
        if owner is not None and (owner != source or not refs):
            logger.debug("Suppressing duplicate tool call %s (key)", key[:200])
            return False

        self._keys.setdefault(key, source)
        self._ids.update(id_keys)
        return True

    def reset(self) -> None:
        self._keys.clear()
        self._ids.clear()
