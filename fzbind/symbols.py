"""
Symbol table mapping short names found in comments to documentation anchors.

Populated by the header walk as declarations are discovered, so a lookup only
sees what has been registered so far.
"""

from __future__ import annotations

import re
from types import MappingProxyType

# libclang spells declarations without a source-level name as
# "(unnamed at f.h:1:1)", "(unnamed enum at ...)" or "enum (anonymous at ...)"
_ANONYMOUS_RE = re.compile(r"\((?:unnamed|anonymous)\b[^)]* at ")


def is_anonymous(name):
    return bool(_ANONYMOUS_RE.search(name))


class SymbolTable:
    def __init__(self):
        self._anchors: dict[str, str] = {}

    def register(self, short_name: str, anchor: str) -> None:
        self._anchors[short_name] = anchor

    def register_enum_variant(self, enum_name: str | None, variant_name: str) -> None:
        """Link ``variant_name`` to ``<enum>_<variant>``.

        Variants of anonymous enums have nothing stable to link to and are
        skipped.
        """
        if not enum_name or is_anonymous(enum_name):
            return
        self._anchors[variant_name] = f"{enum_name}_{variant_name}"

    def lookup(self, short_name: str) -> str | None:
        return self._anchors.get(short_name)

    def view(self):
        return MappingProxyType(self._anchors)

    def clear(self):
        self._anchors.clear()

    def __contains__(self, short_name):
        return short_name in self._anchors

    def __len__(self):
        return len(self._anchors)

    def __iter__(self):
        return iter(self._anchors)
