#!/usr/bin/env python3
"""
Command line entry points.

Usage:
    python -m fzbind.cli docs mupdf/include/mupdf/fitz.h -I mupdf/include -o api.md
    python -m fzbind.cli flags --out build/
    python -m fzbind.cli build mupdf/ --out target/
"""

import argparse
import logging
import os
import sys

from .callbacks import Callbacks
from .config import BuildConfig
from .parser import parse_headers
from .renderer import RenderConfig, render_page


def _cmd_docs(args):
    clang_args = []
    for inc in args.include:
        clang_args += ["-I", inc]
    clang_args += [f"-D{d}" for d in args.define]

    try:
        docs = parse_headers(args.headers, callbacks=Callbacks(), clang_args=clang_args)
    except RuntimeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    cfg = RenderConfig(heading_level=2, undocumented=not args.documented_only)
    md = render_page(docs, args.title, cfg)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(md)
        print(f"{len(docs)} declarations written to {args.output}")
    else:
        sys.stdout.write(md)
    return 0


def _cmd_flags(args):
    config = BuildConfig.from_env()
    print("features: " + (", ".join(sorted(config.features)) or "(none)"))
    print("cflags:   " + config.cflags())
    print("make:     " + " ".join(config.make_flags(args.out)))
    return 0


def _cmd_build(args):
    from .build import build_libmupdf, build_libmupdf_msvc

    config = BuildConfig.from_env()
    try:
        if "msvc" in config.target:
            spec = build_libmupdf_msvc(config, args.source, args.out)
        else:
            spec = build_libmupdf(config, args.source, args.out)
    except RuntimeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    for line in spec.directives():
        print(line)
    return 0


def main(argv=None):
    p = argparse.ArgumentParser(description="MuPDF build flags and binding documentation")
    p.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    sub = p.add_subparsers(dest="command", required=True)

    d = sub.add_parser("docs", help="Render the binding reference for headers")
    d.add_argument("headers", nargs="+", help="Headers to walk, in order")
    d.add_argument("-I", dest="include", action="append", default=[], help="Include directory")
    d.add_argument("-D", dest="define", action="append", default=[], help="Preprocessor define")
    d.add_argument("-o", "--output", help="Write Markdown here instead of stdout")
    d.add_argument("--title", default="MuPDF API", help="Page title")
    d.add_argument(
        "--documented-only", action="store_true", help="Skip declarations without a doc comment"
    )
    d.set_defaults(func=_cmd_docs)

    f = sub.add_parser("flags", help="Show defines and make flags for the current environment")
    f.add_argument("--out", default=os.path.join("build"), help="Build output directory")
    f.set_defaults(func=_cmd_flags)

    b = sub.add_parser("build", help="Stage and build libmupdf")
    b.add_argument("source", help="MuPDF source tree")
    b.add_argument("--out", required=True, help="Build output directory")
    b.set_defaults(func=_cmd_build)

    args = p.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING, format="%(levelname)s: %(message)s"
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
