"""lakebuild -- pinned build and development environment for the ``lakecli`` binary.

This package evaluates a small declarative descriptor: three pinned inputs
(a base package collection, a platform-enumeration utility and a build
helper), and for every supported system a buildable ``lakecli`` package plus
a development shell with the Rust toolchain.

Typical workflow::

    lakebuild lock        # pin every input into lakebuild.lock
    lakebuild show        # inspect the per-system outputs
    lakebuild build       # compile lakecli for the host system
    lakebuild develop     # enter the development shell

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    descriptor: Built-in descriptor and descriptor file loading.
    locking: Input resolution, lockfiles and the resolved input graph.
    platforms: System identifiers and per-system evaluation.
    packages: The resolved package set for one system.
    build: Build output composition and the cargo invocation.
    devshell: Development shell composition and entry.
    evaluate: Whole-descriptor evaluation across systems.
    config: XDG-aware global configuration.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
