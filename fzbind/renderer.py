"""
Markdown renderer for walked declarations.

Takes Declaration objects from the parser and turns them into Markdown with
headings, C signatures, anchor IDs and member lists. Doc text is already
Markdown; only the targets of its cross-reference links are rewritten.
"""

from __future__ import annotations

import re

from .parser import DeclKind
from .symbols import is_anonymous

_KIND_LABELS = {
    DeclKind.FUNCTION: "Function",
    DeclKind.VARIABLE: "Variable",
    DeclKind.TYPEDEF: "Type",
    DeclKind.STRUCT: "Struct",
    DeclKind.UNION: "Union",
    DeclKind.ENUM: "Enum",
    DeclKind.ENUM_CONSTANT: "Variant",
    DeclKind.FIELD: "Field",
    DeclKind.MACRO: "Constant",
}

_LINK_RE = re.compile(r"\[`([^`]+)`\]\(([^)\s]+)\)")


def anchor_id(doc, parent=None):
    """Anchor a declaration is reachable under, or "" when it has none.

    Matches the anchors the symbol table hands out, so links produced by the
    comment transformer land on the right heading.
    """
    if doc.kind == DeclKind.ENUM_CONSTANT:
        if parent is None or is_anonymous(parent.name):
            return ""
        return f"{parent.name}_{doc.name}"
    if doc.kind == DeclKind.FIELD:
        return f"{parent.name}.{doc.name}" if parent is not None else ""
    if is_anonymous(doc.name):
        return ""
    return doc.name


class RenderConfig:
    def __init__(
        self,
        *,
        heading_level=3,
        members=True,
        show_derives=True,
        undocumented=True,
        resolve=None,
    ):
        self.heading_level = heading_level
        self.members = members
        self.show_derives = show_derives
        self.undocumented = undocumented
        # anchor -> URL; None keeps the link on the current page
        self.resolve = resolve

    def member_config(self):
        return RenderConfig(
            heading_level=self.heading_level + 1,
            members=self.members,
            show_derives=self.show_derives,
            undocumented=True,
            resolve=self.resolve,
        )


def _heading(text, level):
    return f"{'#' * level} {text}"


def resolve_links(markdown, resolve=None):
    def replace(m):
        name, anchor = m.group(1), m.group(2)
        url = resolve(anchor) if resolve else None
        if url is None:
            url = f"#{anchor}"
        return f"[`{name}`]({url})"

    return _LINK_RE.sub(replace, markdown)


def _shift_headings(markdown, level):
    # "# Arguments" from the transformer sits one level below the symbol heading
    return re.sub(r"^# ", "#" * (level + 1) + " ", markdown, flags=re.MULTILINE)


def render_doc(doc, cfg=None, parent=None):
    if cfg is None:
        cfg = RenderConfig()

    parts = []
    label = _KIND_LABELS.get(doc.kind, "")
    display = "(anonymous)" if is_anonymous(doc.name) else doc.name
    htxt = f"{label}: `{display}`" if label else f"`{display}`"

    aid = anchor_id(doc, parent)
    if aid:
        parts += [f'<a id="{aid}"></a>', ""]
    parts += [_heading(htxt, cfg.heading_level), ""]

    if doc.signature and doc.kind not in (DeclKind.ENUM_CONSTANT, DeclKind.FIELD):
        parts += ["```c", doc.signature, "```", ""]
    elif doc.signature:
        parts += [f"`{doc.signature}`", ""]

    if doc.doc:
        body = _shift_headings(doc.doc, cfg.heading_level)
        parts += [resolve_links(body, cfg.resolve), ""]

    if cfg.show_derives and doc.derives:
        parts += ["**Derives:** " + ", ".join(f"`{d}`" for d in doc.derives), ""]

    if cfg.members and doc.members:
        mcfg = cfg.member_config()
        for member in doc.members:
            parts.append(render_doc(member, mcfg, parent=doc))

    return "\n".join(parts)


def render_docs(docs, cfg=None):
    if cfg is None:
        cfg = RenderConfig()
    shown = [d for d in docs if cfg.undocumented or d.doc]
    return "\n---\n\n".join(render_doc(d, cfg) for d in shown)


def render_page(docs, title, cfg=None):
    if cfg is None:
        cfg = RenderConfig(heading_level=2)
    body = render_docs(docs, cfg)
    if not body:
        return f"# {title}\n\n_No bound symbols in this header._\n"
    return f"# {title}\n\n{body}\n"
