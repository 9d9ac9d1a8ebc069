"""Local $ref resolution for OpenAPI documents."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from .errors import ReferenceCycle, ReferenceNotFound, UnsupportedReference


logger = logging.getLogger(__name__)


class ReferenceResolver:
    """Resolves `#/a/b/c` pointers within a single document.

    One resolver is created per compilation pass. Both the pointer targets and
    the fully inlined nodes are memoized by pointer string, so shared
    components are only walked once per document.
    """

    def __init__(self, spec: Mapping[str, Any]) -> None:
        self.spec = spec
        self._targets: Dict[str, Any] = {}
        self._inlined: Dict[str, Any] = {}

    def resolve(self, pointer: str, _chain: Optional[List[str]] = None) -> Any:
        """Return the node a pointer designates, following ref-to-ref chains."""
        if pointer in self._targets:
            return self._targets[pointer]

        chain = list(_chain or [])
        if pointer in chain:
            raise ReferenceCycle(pointer, chain)
        if not isinstance(pointer, str) or not pointer.startswith("#/"):
            raise UnsupportedReference(str(pointer))

        current: Any = self.spec
        for part in pointer[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if isinstance(current, Mapping) and part in current:
                current = current[part]
            elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
                current = current[int(part)]
            else:
                raise ReferenceNotFound(pointer)

        if isinstance(current, Mapping) and "$ref" in current:
            current = self.resolve(current["$ref"], [*chain, pointer])

        self._targets[pointer] = current
        return current

    def resolve_all(self, obj: Any) -> Any:
        """Return a copy of `obj` with every `$ref` replaced by its inlined target."""
        return self._walk(obj, [])

    def _walk(self, obj: Any, stack: List[str]) -> Any:
        if isinstance(obj, Mapping):
            if "$ref" in obj:
                return self._inline(obj["$ref"], stack)
            return {key: self._walk(value, stack) for key, value in obj.items()}
        if isinstance(obj, list):
            return [self._walk(item, stack) for item in obj]
        return obj

    def _inline(self, pointer: str, stack: List[str]) -> Any:
        if pointer in stack:
            raise ReferenceCycle(pointer, stack)
        if pointer in self._inlined:
            return self._inlined[pointer]

        target = self.resolve(pointer)
        inlined = self._walk(target, [*stack, pointer])
        self._inlined[pointer] = inlined
        return inlined
