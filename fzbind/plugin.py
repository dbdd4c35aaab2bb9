"""
MkDocs plugin publishing the MuPDF binding reference.

Walks the configured headers once per build, with a fresh symbol table, so
doc comments are rewritten in the same order the binding generator sees
them. Each header becomes one page; links between pages are resolved from
the anchors the walk handed out.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from mkdocs.config import config_options
from mkdocs.config.base import Config as MkDocsConfig
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import File

from .callbacks import Callbacks
from .parser import Allowlist, HeaderWalker
from .renderer import RenderConfig, anchor_id, render_page
from .symbols import SymbolTable

log = logging.getLogger("mkdocs.plugins.fzbind")


class FzbindConfig(MkDocsConfig):
    header_root = config_options.Type(str, default="")
    headers = config_options.Type(list, default=[])
    exclude = config_options.Type(list, default=[])
    clang_args = config_options.Type(list, default=[])
    allow_functions = config_options.Type(list, default=[])
    allow_types = config_options.Type(list, default=[])
    allow_vars = config_options.Type(list, default=[])
    output_dir = config_options.Type(str, default="api_reference")
    nav_title = config_options.Type(str, default="API Reference")
    heading_level = config_options.Type(int, default=2)
    index = config_options.Type(bool, default=True)
    undocumented = config_options.Type(bool, default=True)


def _discover_headers(root, exclude):
    out = []
    for dirpath, dirnames, fnames in os.walk(root):
        dirnames.sort()
        for fn in sorted(fnames):
            if not fn.endswith(".h"):
                continue
            rel = os.path.relpath(os.path.join(dirpath, fn), root)
            if any(fnmatch.fnmatch(fn, p) or fnmatch.fnmatch(rel, p) for p in exclude):
                continue
            out.append(rel)
    return out


def _header_rel_to_md_uri(rel, output_dir):
    return f"{output_dir}/{rel.replace(os.sep, '/')}.md"


class FzbindPlugin(BasePlugin[FzbindConfig]):

    def __init__(self):
        super().__init__()
        self._symbols = SymbolTable()
        self._pages = {}
        self._anchors = {}
        self._tmpfiles = []
        self._root = ""
        self._use_dir_urls = True

    # ── Header walk ──

    def _resolve_root(self, config_dir):
        root = self.config.get("header_root", "") or "."
        if not os.path.isabs(root):
            root = os.path.normpath(os.path.join(config_dir, root))
        return root

    def _allowlist(self):
        allow = Allowlist()
        if self.config.get("allow_functions"):
            allow.functions = list(self.config["allow_functions"])
        if self.config.get("allow_types"):
            allow.types = list(self.config["allow_types"])
        if self.config.get("allow_vars"):
            allow.variables = list(self.config["allow_vars"])
        return allow

    def _walk(self):
        self._symbols.clear()
        self._pages.clear()
        self._anchors.clear()
        if not os.path.isdir(self._root):
            log.error("fzbind: header root missing: %s", self._root)
            return

        headers = list(self.config.get("headers", [])) or _discover_headers(
            self._root, self.config.get("exclude", [])
        )
        walker = HeaderWalker(
            callbacks=Callbacks(self._symbols),
            clang_args=["-I", self._root] + list(self.config["clang_args"]),
            allowlist=self._allowlist(),
        )
        for rel in headers:
            path = os.path.normpath(os.path.join(self._root, rel))
            if not os.path.isfile(path):
                log.warning("fzbind: header not found: %s", path)
                continue
            try:
                walker.parse(path)
            except RuntimeError as exc:
                log.error("fzbind: %s", exc)

        out_dir = self.config["output_dir"]
        for doc in walker.declarations:
            rel = self._page_rel(doc.filename)
            uri = _header_rel_to_md_uri(rel, out_dir)
            self._pages.setdefault(uri, (rel, []))[1].append(doc)
            self._register_anchors(doc, uri)

        if self.config["index"] and self._pages:
            self._pages[f"{out_dir}/index.md"] = ("__INDEX__", [])
        log.info(
            "fzbind: %d headers walked, %d symbols registered", len(headers), len(self._symbols)
        )

    def _page_rel(self, filename):
        if not filename:
            return "builtin"
        path = os.path.abspath(filename)
        root = os.path.abspath(self._root)
        if os.path.commonpath([path, root]) == root:
            return os.path.relpath(path, root)
        return os.path.basename(path)

    def _register_anchors(self, doc, uri, parent=None):
        aid = anchor_id(doc, parent)
        if aid:
            self._anchors.setdefault(aid, uri)
        for member in doc.members:
            self._register_anchors(member, uri, doc)

    # ── Cross-page links ──

    def _resolve_anchor(self, anchor, current_page_uri):
        target = self._anchors.get(anchor)
        if target is None:
            return None
        if target == current_page_uri:
            return f"#{anchor}"
        if self._use_dir_urls:
            target_dir = target.removesuffix(".md")
            current_dir = current_page_uri.removesuffix(".md")
            rel = os.path.relpath(target_dir, current_dir).replace(os.sep, "/") + "/"
        else:
            rel = os.path.relpath(target, os.path.dirname(current_page_uri)).replace(os.sep, "/")
        return f"{rel}#{anchor}"

    def _rcfg(self, page_uri):
        return RenderConfig(
            heading_level=self.config["heading_level"],
            undocumented=self.config["undocumented"],
            resolve=lambda anchor: self._resolve_anchor(anchor, page_uri),
        )

    # ── Pages ──

    def _mk_index(self, page_uri):
        lines = [f"# {self.config['nav_title']}", ""]
        headers = sorted((rel, docs) for rel, docs in self._pages.values() if rel != "__INDEX__")
        nsym = sum(len(docs) for _, docs in headers)
        lines += [f"{nsym} bound symbols across {len(headers)} headers.", ""]
        lines += ["| Header | Symbols |", "|--------|---------|"]
        index_dir = os.path.dirname(page_uri)
        for rel, docs in headers:
            uri = _header_rel_to_md_uri(rel, self.config["output_dir"])
            link = os.path.relpath(uri, index_dir).replace(os.sep, "/")
            lines.append(f"| [`{rel}`]({link}) | {len(docs)} |")
        lines.append("")
        return "\n".join(lines)

    def _nav_tree(self):
        out_dir = self.config["output_dir"]
        tree = []
        if self.config["index"]:
            tree.append({"Overview": f"{out_dir}/index.md"})
        for uri, (rel, _) in sorted(self._pages.items()):
            if rel != "__INDEX__":
                tree.append({rel.replace(os.sep, "/"): uri})
        return tree

    def _inject_nav(self, config):
        if not self._pages:
            return
        title = self.config["nav_title"]
        section = {title: self._nav_tree()}
        nav = config.get("nav")
        if nav is None:
            config["nav"] = [section]
            return
        for i, item in enumerate(nav):
            if isinstance(item, dict) and title in item:
                nav[i] = section
                return
        nav.append(section)

    # ── MkDocs lifecycle hooks ──

    def on_config(self, config, **kwargs):
        config_dir = os.path.dirname(config.get("config_file_path", "") or "") or os.getcwd()
        self._tmpfiles.clear()
        self._root = self._resolve_root(config_dir)
        self._use_dir_urls = config.get("use_directory_urls", True)

        # Links point at generated pages MkDocs cannot validate up front
        try:
            config["validation"]["links"]["unrecognized_links"] = 0
        except (KeyError, TypeError):
            pass

        self._walk()
        self._inject_nav(config)
        return config

    def on_files(self, files, *, config, **kwargs):
        for uri in sorted(self._pages):
            try:
                f = File.generated(config, uri, content="")
            except (AttributeError, TypeError):
                f = File(
                    uri,
                    config["docs_dir"],
                    config["site_dir"],
                    config.get("use_directory_urls", True),
                )
                dest = os.path.join(config["docs_dir"], uri)
                os.makedirs(os.path.dirname(dest), exist_ok=True)
                open(dest, "w").close()
                self._tmpfiles.append(dest)
            f.edit_uri = None
            files.append(f)
        return files

    def on_page_markdown(self, markdown, *, page, config, files, **kwargs):
        src_uri = getattr(page.file, "src_uri", None) or page.file.src_path
        if src_uri not in self._pages:
            return markdown
        rel, docs = self._pages[src_uri]
        if rel == "__INDEX__":
            return self._mk_index(src_uri)
        return render_page(docs, rel.replace(os.sep, "/"), self._rcfg(src_uri))

    def on_post_build(self, *, config, **kwargs):
        docs_dir = config["docs_dir"]
        for p in self._tmpfiles:
            try:
                os.remove(p)
            except OSError:
                pass
            d = os.path.dirname(p)
            while d != docs_dir:
                try:
                    os.rmdir(d)
                except OSError:
                    break
                d = os.path.dirname(d)
