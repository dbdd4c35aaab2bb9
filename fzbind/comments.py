"""
Doc comment transformer for MuPDF headers.

Turns one raw C comment into Markdown: keeps paragraph structure, collects
``@param`` lines under an "Arguments" heading and links every ``fz_*``
mention that the symbol table already knows about.
"""

from __future__ import annotations

import re
import textwrap

from .symbols import SymbolTable

# MuPDF's public naming convention, plus pointer mentions such as fz_context*
_IDENT_RE = re.compile(r"fz_[a-z_*]+", re.IGNORECASE)
_ESCAPE_RE = re.compile(r"(?<!\\)([\[\]<>])")
_NULL_RE = re.compile(r"(?<!`)NULL(?!`)")
_COMMENT_LINE_RE = re.compile(r"^\s*///?<?\s?", re.MULTILINE)

PARAM_MARKER = "@param"
ARGUMENTS_HEADING = "# Arguments\n"
LIST_ITEM = "* "
SOFT_BREAK = "<br>"
PARAGRAPH_BREAK = "\n\n"


def clean_comment(raw):
    """Strip C comment delimiters and leading ``*`` decorations."""
    if raw.lstrip().startswith("//"):
        return _COMMENT_LINE_RE.sub("", raw).strip()

    text = raw.strip()
    for opener in ("/**<", "/*!<", "/**", "/*!", "/*"):
        if text.startswith(opener):
            text = text[len(opener):]
            break
    if text.endswith("*/"):
        text = text[:-2]

    cleaned = []
    for line in text.split("\n"):
        s = line.lstrip()
        if s.startswith("* "):
            cleaned.append(s[2:])
        elif s.startswith("*"):
            cleaned.append(s[1:])
        else:
            cleaned.append(line)
    return textwrap.dedent("\n".join(cleaned)).strip()


# ── identifier resolution ──
#
# Each strategy gets the matched text and a lookup function and returns the
# replacement, or None to hand over to the next one.


def _pointer_mention(name, lookup):
    if "*" in name:
        return f"`{name}`"
    return None


def _exact_link(name, lookup):
    anchor = lookup(name)
    if anchor is not None:
        return f"[`{name}`]({anchor})"
    return None


def _plural_link(name, lookup):
    if not name.endswith("s"):
        return None
    singular = name[:-1]
    anchor = lookup(singular)
    if anchor is not None:
        return f"[`{singular}`]({anchor})s"
    return None


def _inline_code(name, lookup):
    return f"`{name}`"


RESOLVERS = (_pointer_mention, _exact_link, _plural_link, _inline_code)


def resolve_identifier(name, lookup):
    for strategy in RESOLVERS:
        rendered = strategy(name, lookup)
        if rendered is not None:
            return rendered


def _lookup_func(symbols):
    if symbols is None:
        return lambda name: None
    if isinstance(symbols, SymbolTable):
        return symbols.lookup
    return symbols.get


# ── line rewriting ──


def escape_markup(line):
    line = _ESCAPE_RE.sub(r"\\\1", line)
    return _NULL_RE.sub("`NULL`", line)


def link_identifiers(line, lookup):
    return _IDENT_RE.sub(lambda m: resolve_identifier(m.group(0), lookup), line)


def rewrite_param_list(line):
    """Render each name of an ``a, b: text`` line as inline code.

    The line is returned unchanged unless every name before the first
    ``": "`` is a bare token.
    """
    first, sep, rest = line.partition(": ")
    if not sep:
        return line
    names = first.split(", ")
    for name in names:
        if not name or any(c.isspace() or c == "`" for c in name):
            return line
    return ", ".join(f"`{name}`" for name in names) + ": " + rest


def transform(raw_text, symbols=None):
    lookup = _lookup_func(symbols)
    output = []
    blank_lines = 0
    arguments = False

    for line in raw_text.splitlines():
        line = line.strip()
        if not line:
            blank_lines += 1
            continue

        argument = False
        if line.startswith(PARAM_MARKER):
            line = line[len(PARAM_MARKER):]
            argument = True

        if output:
            if argument:
                output.append("\n")
            elif blank_lines >= 2:
                output.append(PARAGRAPH_BREAK)
            else:
                output.append(SOFT_BREAK)
        blank_lines = 0

        if argument:
            if not arguments:
                output.append(ARGUMENTS_HEADING)
                arguments = True
            output.append(LIST_ITEM)

        line = escape_markup(line)
        line = link_identifiers(line, lookup)
        output.append(rewrite_param_list(line))

    return "".join(output)


class CommentTransformer:
    """Transformer bound to the symbol table of one generation run."""

    def __init__(self, symbols):
        self.symbols = symbols

    def __call__(self, raw_text):
        return transform(raw_text, self.symbols)
