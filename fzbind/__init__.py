"""
fzbind: MuPDF build configuration and documented bindings.

Compiles the MuPDF C library with a feature-dependent set of defines and
walks its public headers, rewriting their doc comments into Markdown with
cross-references between the ``fz_*`` symbols found along the way.
"""

__version__ = "0.3.1"
