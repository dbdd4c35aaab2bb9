from setuptools import setup, find_packages

setup(
    name="fzbind",
    version="0.3.1",
    description="MuPDF build configuration and documented bindings",
    keywords="mupdf bindings libclang mkdocs documentation",
    packages=find_packages(exclude=["tests"]),
    python_requires=">=3.9",
    install_requires=[
        "mkdocs>=1.4",
        "libclang>=16.0",
    ],
    extras_require={
        "test": ["pytest"],
    },
    classifiers = [
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Documentation",
        "Topic :: Software Development :: Build Tools",
        "Framework :: MkDocs",
    ],
    entry_points={
        "mkdocs.plugins": [
            "fzbind = fzbind.plugin:FzbindPlugin",
        ],
        "console_scripts": [
            "fzbind = fzbind.cli:main",
        ],
    },
)
