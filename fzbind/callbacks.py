"""
Hooks answered on behalf of the header walk.

The walk calls ``item_name`` and ``enum_variant_name`` as it discovers
declarations and ``process_comment`` whenever a declaration carries a doc
comment. Registration always happens before the comment of the same
declaration is processed.
"""

from __future__ import annotations

from .comments import transform
from .symbols import SymbolTable

ZEROCOPY_TYPES = ("fz_point", "fz_quad")
ZEROCOPY_DERIVES = (
    "zerocopy::FromBytes",
    "zerocopy::IntoBytes",
    "zerocopy::Immutable",
)


class Callbacks:
    def __init__(self, symbols=None):
        self.symbols = symbols if symbols is not None else SymbolTable()

    def item_name(self, name):
        # Declarations keep their names; the identity entry is what later
        # comments and enum variants link against.
        self.symbols.register(name, name)
        return None

    def enum_variant_name(self, enum_name, variant_name):
        self.symbols.register_enum_variant(enum_name, variant_name)
        return None

    def process_comment(self, comment):
        return transform(comment, self.symbols.view())

    def add_derives(self, type_name):
        if type_name in ZEROCOPY_TYPES:
            return list(ZEROCOPY_DERIVES)
        return []
