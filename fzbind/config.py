"""
Build configuration for libmupdf.

Every option the native build understands is resolved once into a
``BuildConfig`` value, which then derives compiler defines, make flags and
the MSVC ``CL`` environment from it. Nothing below reads the environment
except ``BuildConfig.from_env``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

# Document handlers that are compiled in only when their feature is on
CAPABILITIES = ("xps", "svg", "cbz", "img", "html", "epub", "js")

# Fallback fonts left out unless "all-fonts" is enabled
SKIP_FONTS = ("TOFU", "TOFU_CJK", "TOFU_NOTO", "TOFU_SYMBOL", "TOFU_EMOJI", "TOFU_SIL")

OPTIONAL_COMPONENTS = ("tesseract", "libarchive", "zxingcpp")


@dataclass(frozen=True)
class CpuFlag:
    feature: str
    compiler_flag: str
    make_flag: str
    define: str | None = None


CPU_FLAGS = (
    CpuFlag("sse4.1", "-msse4.1", "HAVE_SSE4_1", "ARCH_HAS_SSE"),
    CpuFlag("avx", "-mavx", "HAVE_AVX"),
    CpuFlag("avx2", "-mavx2", "HAVE_AVX2"),
    CpuFlag("fma", "-mfma", "HAVE_FMA"),
    CpuFlag("neon", "-mfpu=neon", "HAVE_NEON", "ARCH_HAS_NEON"),
)


@dataclass(frozen=True)
class SystemLib:
    name: str
    make_name: str
    pkg_config: tuple[str, ...]
    # covered by the blanket "sys-lib" feature
    in_sys_lib: bool = True
    # only relevant when this component feature is on
    requires: str = ""
    # no vendored copy, the system library is used whenever it is required
    always: bool = False


SYSTEM_LIBS = (
    SystemLib("freetype", "FREETYPE", ("freetype2",)),
    SystemLib("gumbo", "GUMBO", ("gumbo",)),
    SystemLib("harfbuzz", "HARFBUZZ", ("harfbuzz",)),
    SystemLib("jbig2dec", "JBIG2DEC", ("jbig2dec",)),
    SystemLib("jpegxr", "JPEGXR", ("jpegxr",), in_sys_lib=False),
    SystemLib("lcms2", "LCMS2", ("lcms2",), in_sys_lib=False),
    SystemLib("libjpeg", "LIBJPEG", ("libjpeg",)),
    SystemLib("openjpeg", "OPENJPEG", ("libopenjp2",)),
    SystemLib("zlib", "ZLIB", ("zlib",)),
    SystemLib("leptonica", "LEPTONICA", ("lept",), requires="tesseract"),
    SystemLib("tesseract", "TESSERACT", ("tesseract",), requires="tesseract"),
    SystemLib("zxingcpp", "ZXINGCPP", ("zxing",), requires="zxingcpp"),
    SystemLib("libarchive", "LIBARCHIVE", ("libarchive",), requires="libarchive", always=True),
    SystemLib("brotli", "BROTLI", ("libbrotlidec", "libbrotlienc")),
)

KNOWN_FEATURES = frozenset(
    CAPABILITIES
    + OPTIONAL_COMPONENTS
    + ("all-fonts", "sys-lib")
    + tuple(f"sys-lib-{lib.name}" for lib in SYSTEM_LIBS if not lib.always)
)

_FEATURE_ENV_PREFIX = "CARGO_FEATURE_"


def _normalize_feature(name):
    return name.strip().lower().replace("_", "-")


@dataclass(frozen=True)
class BuildConfig:
    features: frozenset[str] = field(default_factory=frozenset)
    target_features: frozenset[str] = field(default_factory=frozenset)
    profile: str = "debug"
    target: str = ""
    jobs: int | None = None
    msvc_toolset: str = ""

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ

        features = set()
        for key, value in env.items():
            if key.startswith(_FEATURE_ENV_PREFIX) and value:
                features.add(_normalize_feature(key[len(_FEATURE_ENV_PREFIX):]))
        for name in env.get("FZBIND_FEATURES", "").split(","):
            if name.strip():
                features.add(_normalize_feature(name))
        for name in sorted(features - KNOWN_FEATURES):
            log.warning("ignoring unknown feature %r", name)
        features &= KNOWN_FEATURES

        target_features = frozenset(
            f for f in env.get("CARGO_CFG_TARGET_FEATURE", "").split(",") if f
        )
        profile = "release" if env.get("PROFILE", "debug") in ("bench", "release") else "debug"

        jobs = env.get("FZBIND_JOBS") or env.get("NUM_JOBS")
        return cls(
            features=frozenset(features),
            target_features=target_features,
            profile=profile,
            target=env.get("TARGET", ""),
            jobs=int(jobs) if jobs else os.cpu_count(),
            msvc_toolset=env.get("MUPDF_MSVC_PLATFORM_TOOLSET", ""),
        )

    def enabled(self, feature):
        return feature in self.features

    # ── compiler side ──

    def defines(self):
        """(name, value) pairs; a value of None means a bare ``-DNAME``."""
        out = []
        for cap in CAPABILITIES:
            if not self.enabled(cap):
                out.append((f"FZ_ENABLE_{cap.upper()}", "0"))
        if not self.enabled("all-fonts"):
            out += [(font, None) for font in SKIP_FONTS]
        for cpu in CPU_FLAGS:
            if cpu.define:
                out.append((cpu.define, "1" if cpu.feature in self.target_features else "0"))
        return out

    def compiler_flags(self):
        return [cpu.compiler_flag for cpu in CPU_FLAGS if cpu.feature in self.target_features]

    def cflags(self, base=""):
        parts = [base] if base else []
        parts += self.compiler_flags()
        for name, value in self.defines():
            parts.append(f"-D{name}" if value is None else f"-D{name}={value}")
        return " ".join(parts)

    # ── make side ──

    def system_libs(self):
        libs = []
        for lib in SYSTEM_LIBS:
            if lib.requires and not self.enabled(lib.requires):
                continue
            blanket = lib.in_sys_lib and self.enabled("sys-lib")
            if lib.always or blanket or self.enabled(f"sys-lib-{lib.name}"):
                libs.append(lib)
        return libs

    def make_flags(self, out_dir, pkg_config=None):
        """Arguments for ``make`` in the staged source tree.

        ``pkg_config`` maps a pkg-config package name to its include flags;
        it is only called for system libraries that are actually selected.
        """
        flags = ["libs", f"build={self.profile}", f"OUT={out_dir}"]
        for component in OPTIONAL_COMPONENTS:
            if not self.enabled(component):
                flags.append(f"USE_{component.upper()}=no")
        if self.enabled("sys-lib"):
            flags.append("USE_SYSTEM_LIBS=yes")
        flags += ["HAVE_X11=no", "HAVE_GLUT=no", "HAVE_CURL=no", "verbose=yes"]

        for cpu in CPU_FLAGS:
            if cpu.feature in self.target_features:
                flags.append(f"{cpu.make_flag}=yes")

        for lib in self.system_libs():
            flags.append(f"USE_SYSTEM_{lib.make_name}=yes")
            for pkg in lib.pkg_config:
                cflags = pkg_config(pkg) if pkg_config else ""
                flags.append(f"SYS_{lib.make_name}_CFLAGS={cflags}")

        if self.jobs:
            flags.append(f"-j{self.jobs}")
        return flags

    # ── MSVC side ──

    def msvc_configuration(self):
        return "Release" if self.profile == "release" else "Debug"

    def msvc_platform(self):
        return "x64" if "x86_64" in self.target else "Win32"

    def msvc_cl_env(self):
        cl = []
        if not self.enabled("all-fonts"):
            cl += [f"/D{font}" for font in SKIP_FONTS]
        for cap in CAPABILITIES:
            if not self.enabled(cap):
                cl.append(f"/DFZ_ENABLE_{cap.upper()}#0")
        cl.append("/MP")
        return cl
