"""
Native build of libmupdf.

Stages the MuPDF source tree into an output directory and drives make (or
msbuild on MSVC targets) with the flags derived from a ``BuildConfig``.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass, field

log = logging.getLogger(__name__)


@dataclass
class LinkSpec:
    search_paths: list[str] = field(default_factory=list)
    static_libs: list[str] = field(default_factory=list)
    dylibs: list[str] = field(default_factory=list)

    def directives(self):
        lines = [f"cargo:rustc-link-search=native={p}" for p in self.search_paths]
        lines += [f"cargo:rustc-link-lib=static={lib}" for lib in self.static_libs]
        lines += [f"cargo:rustc-link-lib=dylib={lib}" for lib in self.dylibs]
        return lines


def check_source_tree(src_dir):
    if not os.path.isdir(src_dir) or not os.listdir(src_dir):
        raise RuntimeError(
            f"The `{os.path.basename(src_dir)}` directory is empty, "
            "did you forget to pull the submodules? "
            "Try `git submodule update --init --recursive`"
        )


def _ignore_dirs(names):
    def ignore(path, entries):
        return {e for e in entries if e in names and os.path.isdir(os.path.join(path, e))}

    return ignore


def stage_source(src_dir, dest_dir, exclude=(".git",)):
    """Copy the source tree, skipping directories named in ``exclude``."""
    check_source_tree(src_dir)
    shutil.copytree(src_dir, dest_dir, ignore=_ignore_dirs(set(exclude)), dirs_exist_ok=True)
    return dest_dir


def pkg_config_cflags(package):
    try:
        proc = subprocess.run(
            ["pkg-config", "--cflags-only-I", package],
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as exc:
        raise RuntimeError("pkg-config not found, needed for system libraries") from exc
    except subprocess.CalledProcessError as exc:
        raise RuntimeError(f"pkg-config cannot find {package}: {exc.stderr.strip()}") from exc
    return proc.stdout.strip()


def make_program():
    if sys.platform.startswith(("freebsd", "openbsd", "netbsd")):
        return "gmake"
    return "make"


def _run(cmd, cwd, env=None):
    log.info("running %s in %s", " ".join(cmd[:2]), cwd)
    try:
        proc = subprocess.run(cmd, cwd=cwd, env=env)
    except FileNotFoundError as exc:
        raise RuntimeError(f"{cmd[0]} failed to start. Do you have it installed?") from exc
    if proc.returncode != 0:
        raise RuntimeError(f"Build error, exit code {proc.returncode}")


def build_libmupdf(config, src_dir, out_dir, cc=None, cxx=None, pkg_config=pkg_config_cflags):
    build_dir = os.path.join(out_dir, "build")
    os.makedirs(build_dir, exist_ok=True)
    # make on the windows gnu toolchain wants forward slashes
    build_dir_str = build_dir.replace("\\", "/")
    stage_source(src_dir, build_dir)

    cc = cc or os.environ.get("CC", "cc")
    cxx = cxx or os.environ.get("CXX", "c++")
    flags = config.make_flags(build_dir_str, pkg_config=pkg_config)
    flags += [
        f"CC={cc}",
        f"CXX={cxx}",
        f"XCFLAGS={config.cflags(os.environ.get('CFLAGS', ''))}",
        f"XCXXFLAGS={config.cflags(os.environ.get('CXXFLAGS', ''))}",
    ]
    _run([make_program(), *flags], cwd=build_dir_str)

    return LinkSpec(search_paths=[build_dir_str], static_libs=["mupdf", "mupdf-third"])


def patch_geometry(build_dir):
    """MSVC 2022 rejects NAN in geometry.c as a constant expression."""
    path = os.path.join(build_dir, "source", "fitz", "geometry.c")
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()
    with open(path, "w", encoding="utf-8") as f:
        f.write(content.replace("NAN", "(0.0/0.0)"))


def build_libmupdf_msvc(config, src_dir, out_dir, msbuild="msbuild.exe"):
    build_dir = os.path.join(out_dir, "build")
    os.makedirs(build_dir, exist_ok=True)
    stage_source(src_dir, build_dir)
    patch_geometry(build_dir)

    profile = config.msvc_configuration()
    platform = config.msvc_platform()
    cmd = [
        msbuild,
        "platform\\win32\\mupdf.sln",
        "/target:libmupdf",
        f"/p:Configuration={profile}",
        f"/p:Platform={platform}",
        f"/p:PlatformToolset={config.msvc_toolset or 'v143'}",
    ]
    env = dict(os.environ, CL=" ".join(config.msvc_cl_env()))
    _run(cmd, cwd=build_dir, env=env)

    if platform == "x64":
        search = os.path.join(build_dir, "platform", "win32", platform, profile)
    else:
        search = os.path.join(build_dir, "platform", "win32", profile)
    spec = LinkSpec(search_paths=[search])
    if profile == "Debug":
        spec.dylibs += ["ucrtd", "vcruntimed", "msvcrtd"]
    spec.dylibs += ["libmupdf", "libthirdparty"]
    return spec
