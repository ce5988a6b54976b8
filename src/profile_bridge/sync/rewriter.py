"""Reference rewriting for opaque nested payloads.

Identifiers show up in places with no fixed schema location (button URLs,
environment variable values, composed query strings), so substitution runs
over every string in the payload rather than over known field paths.

All keys are compiled into one alternation sorted longest first and applied
in a single pass per string. A short identifier therefore never matches
inside a longer one that is also mapped, and replacement values are never
substituted a second time.
"""

import re
from collections.abc import Mapping
from typing import Any


class ReferenceRewriter:
    """Replaces old identifiers with their target-side counterparts.

    Mappings are merged in the order given; later mappings win on the same
    key. The usual order is device ids and tokens, then upstream entity ids,
    then ids collected earlier in the current entity type's own pass.
    """

    def __init__(self, *mappings: Mapping[str, str] | None):
        merged: dict[str, str] = {}
        for mapping in mappings:
            for old, new in (mapping or {}).items():
                if not old or new is None or old == new:
                    continue
                merged[str(old)] = str(new)
        self.mapping = merged
        self._pattern = self._compile(merged)

    @staticmethod
    def _compile(mapping: dict[str, str]) -> re.Pattern | None:
        if not mapping:
            return None
        keys = sorted(mapping, key=len, reverse=True)
        return re.compile("|".join(re.escape(key) for key in keys))

    def rewrite_text(self, text: str) -> str:
        if self._pattern is None:
            return text
        return self._pattern.sub(lambda m: self.mapping[m.group(0)], text)

    def rewrite(self, payload: Any) -> Any:
        """Return a rewritten copy of ``payload``.

        Dict keys and string leaves are rewritten; numbers, booleans and None
        are left alone. The input is not modified.
        """
        if isinstance(payload, str):
            return self.rewrite_text(payload)
        if isinstance(payload, dict):
            return {
                (self.rewrite_text(k) if isinstance(k, str) else k): self.rewrite(v)
                for k, v in payload.items()
            }
        if isinstance(payload, list | tuple):
            return [self.rewrite(item) for item in payload]
        return payload


def rewrite_references(payload: Any, *mappings: Mapping[str, str] | None) -> Any:
    """Shortcut for ``ReferenceRewriter(*mappings).rewrite(payload)``."""
    return ReferenceRewriter(*mappings).rewrite(payload)
