"""
Header walker built on libclang.

Visits the declarations of one or more translation units in file order and
answers the binding hooks as it goes: every allowlisted declaration is
registered first, enum variants right after their enum, and only then is the
attached doc comment handed to ``process_comment``. Comments therefore see
the symbols declared above them and nothing below.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum, auto

from clang.cindex import (
    CursorKind,
    Index,
    TranslationUnit,
    TranslationUnitLoadError,
)

from .callbacks import Callbacks
from .comments import clean_comment
from .symbols import is_anonymous

log = logging.getLogger(__name__)


class DeclKind(Enum):
    FUNCTION = auto()
    VARIABLE = auto()
    TYPEDEF = auto()
    STRUCT = auto()
    UNION = auto()
    ENUM = auto()
    ENUM_CONSTANT = auto()
    FIELD = auto()
    MACRO = auto()


@dataclass
class Declaration:
    name: str
    kind: DeclKind
    doc: str = ""
    signature: str = ""
    filename: str = ""
    line: int = 0
    derives: list[str] = field(default_factory=list)
    members: list[Declaration] = field(default_factory=list)


_KIND_MAP = {
    CursorKind.FUNCTION_DECL: DeclKind.FUNCTION,
    CursorKind.VAR_DECL: DeclKind.VARIABLE,
    CursorKind.TYPEDEF_DECL: DeclKind.TYPEDEF,
    CursorKind.STRUCT_DECL: DeclKind.STRUCT,
    CursorKind.UNION_DECL: DeclKind.UNION,
    CursorKind.ENUM_DECL: DeclKind.ENUM,
    CursorKind.ENUM_CONSTANT_DECL: DeclKind.ENUM_CONSTANT,
    CursorKind.FIELD_DECL: DeclKind.FIELD,
    CursorKind.MACRO_DEFINITION: DeclKind.MACRO,
}

_RECORD_KINDS = (DeclKind.STRUCT, DeclKind.UNION, DeclKind.ENUM)
_TYPE_KINDS = (DeclKind.TYPEDEF, DeclKind.STRUCT, DeclKind.UNION, DeclKind.ENUM)
_ELABORATED_PREFIX_RE = re.compile(r"^(?:const\s+)?(?:enum|struct|union)\s+")

DEFAULT_FUNCTIONS = ("fz_.*", "pdf_.*", "ucdn_.*", "Memento_.*", "mupdf_.*")
DEFAULT_TYPES = ("fz_.*", "pdf_.*")
DEFAULT_VARIABLES = ("fz_.*", "FZ_.*", "pdf_.*", "PDF_.*", "UCDN_.*")


@dataclass
class Allowlist:
    functions: list[str] = field(default_factory=lambda: list(DEFAULT_FUNCTIONS))
    types: list[str] = field(default_factory=lambda: list(DEFAULT_TYPES))
    variables: list[str] = field(default_factory=lambda: list(DEFAULT_VARIABLES))

    def allows(self, kind, name):
        if kind == DeclKind.FUNCTION:
            patterns = self.functions
        elif kind in _TYPE_KINDS:
            patterns = self.types
        else:
            patterns = self.variables
        return any(re.fullmatch(p, name) for p in patterns)


def _record_name(cursor):
    name = cursor.spelling
    if not name or cursor.is_anonymous() or is_anonymous(name):
        # libclang spells typedef'd anonymous records by their typedef name
        # and truly anonymous ones as "enum (unnamed at file:line:col)"
        name = cursor.type.spelling
    return _ELABORATED_PREFIX_RE.sub("", name or "")


def _get_signature(cursor, kind, name):
    if kind == DeclKind.FUNCTION:
        rtype = cursor.result_type.spelling if cursor.result_type else "void"
        params = []
        for ch in cursor.get_children():
            if ch.kind == CursorKind.PARM_DECL:
                params.append(f"{ch.type.spelling} {ch.spelling}".strip())
        if cursor.type.is_function_variadic():
            params.append("...")
        return f"{rtype} {name}({', '.join(params) or 'void'})"
    elif kind in (DeclKind.VARIABLE, DeclKind.FIELD):
        return f"{cursor.type.spelling} {name}"
    elif kind == DeclKind.TYPEDEF:
        return f"typedef {cursor.underlying_typedef_type.spelling} {name}"
    elif kind in _RECORD_KINDS:
        return f"{kind.name.lower()} {name}"
    elif kind == DeclKind.ENUM_CONSTANT:
        return f"{name} = {cursor.enum_value}"
    elif kind == DeclKind.MACRO:
        return "#define " + " ".join(t.spelling for t in cursor.get_tokens())
    return name


def _location(cursor):
    if cursor.location and cursor.location.file:
        return cursor.location.file.name, cursor.location.line
    return "", 0


class HeaderWalker:
    """Walks translation units and collects allowlisted declarations.

    One walker is meant to see every header of a generation run, so a
    declaration reached through several includes is emitted only once.
    """

    def __init__(self, callbacks=None, clang_args=None, allowlist=None):
        self.callbacks = callbacks if callbacks is not None else Callbacks()
        self.clang_args = list(clang_args or [])
        self.allowlist = allowlist if allowlist is not None else Allowlist()
        self.declarations: list[Declaration] = []
        self._seen = {}

    def parse(self, filepath):
        if not os.path.isfile(filepath):
            raise RuntimeError(f"Header not found: {filepath}")
        idx = Index.create()
        args = self.clang_args + ["-x", "c-header"]
        try:
            tu = idx.parse(
                filepath, args=args, options=TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD
            )
        except TranslationUnitLoadError as exc:
            raise RuntimeError(f"Failed to parse {filepath}: {exc}") from exc

        errors = [d for d in tu.diagnostics if d.severity >= 3]
        if errors:
            log.warning("%s: %d clang errors, first: %s", filepath, len(errors), errors[0].spelling)

        added = []
        for cursor in tu.cursor.get_children():
            doc = self._visit(cursor)
            if doc:
                added.append(doc)
        self.declarations.extend(added)
        return added

    def _visit(self, cursor):
        kind = _KIND_MAP.get(cursor.kind)
        if kind is None or kind in (DeclKind.ENUM_CONSTANT, DeclKind.FIELD):
            return None

        if kind == DeclKind.MACRO:
            if cursor.spelling.startswith("_") or not self._is_object_macro(cursor):
                return None
            name = cursor.spelling
        elif kind in _RECORD_KINDS:
            if not cursor.is_definition():
                return None
            name = _record_name(cursor)
        else:
            name = cursor.spelling

        if not name or not self._allowed(cursor, kind, name):
            return None
        if kind == DeclKind.TYPEDEF and self._merge_typedef(cursor, name):
            return None
        if (kind, name) in self._seen:
            return None

        if not is_anonymous(name):
            self.callbacks.item_name(name)
        constants = []
        if kind == DeclKind.ENUM:
            for ch in cursor.get_children():
                if ch.kind == CursorKind.ENUM_CONSTANT_DECL:
                    self.callbacks.enum_variant_name(name, ch.spelling)
                    constants.append(ch)

        filename, line = _location(cursor)
        doc = Declaration(
            name=name,
            kind=kind,
            doc=self._comment(cursor),
            signature=_get_signature(cursor, kind, name),
            filename=filename,
            line=line,
            derives=self.callbacks.add_derives(name) if kind in _TYPE_KINDS else [],
        )
        if kind == DeclKind.ENUM:
            doc.members = [self._member(ch, DeclKind.ENUM_CONSTANT) for ch in constants]
        elif kind in (DeclKind.STRUCT, DeclKind.UNION):
            doc.members = [
                self._member(ch, DeclKind.FIELD)
                for ch in cursor.get_children()
                if ch.kind == CursorKind.FIELD_DECL
            ]
        self._seen[(kind, name)] = doc
        return doc

    def _allowed(self, cursor, kind, name):
        if kind == DeclKind.ENUM and is_anonymous(name):
            # Anonymous enums come in through their constants
            return any(
                self.allowlist.allows(DeclKind.ENUM_CONSTANT, ch.spelling)
                for ch in cursor.get_children()
                if ch.kind == CursorKind.ENUM_CONSTANT_DECL
            )
        return self.allowlist.allows(kind, name)

    def _merge_typedef(self, cursor, name):
        """Fold ``typedef struct {...} name;`` into the record it names."""
        target = cursor.underlying_typedef_type.get_declaration()
        tkind = _KIND_MAP.get(target.kind)
        if tkind not in _RECORD_KINDS:
            return False
        record = self._seen.get((tkind, name))
        if record is None:
            return False
        if not record.doc:
            record.doc = self._comment(cursor)
        return True

    @staticmethod
    def _is_object_macro(cursor):
        tokens = list(cursor.get_tokens())
        # A bare "#define NAME" carries no value to bind
        if len(tokens) < 2:
            return False
        # "NAME(" with no space between is a function-like macro
        paren = tokens[1]
        if paren.spelling == "(" and paren.extent.start.offset == tokens[0].extent.end.offset:
            return False
        return True

    def _comment(self, cursor):
        raw = cursor.raw_comment
        if not raw:
            return ""
        return self.callbacks.process_comment(clean_comment(raw))

    def _member(self, cursor, kind):
        filename, line = _location(cursor)
        return Declaration(
            name=cursor.spelling,
            kind=kind,
            doc=self._comment(cursor),
            signature=_get_signature(cursor, kind, cursor.spelling),
            filename=filename,
            line=line,
        )


def parse_headers(paths, callbacks=None, clang_args=None, allowlist=None):
    walker = HeaderWalker(callbacks=callbacks, clang_args=clang_args, allowlist=allowlist)
    for path in paths:
        walker.parse(path)
    log.debug("walked %d headers, %d declarations", len(paths), len(walker.declarations))
    return walker.declarations
