"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to one failure category of a descriptor evaluation and
is referenced by the corresponding :class:`~lakebuild.exceptions.LakebuildError`
subclass. CI scripts can inspect the exit code to tell a resolution failure
from a compilation failure without parsing stderr.

Example::

    $ lakebuild build
    $ echo $?
    4   # EXIT_COMPILATION_FAILURE -- cargo rejected the source tree
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_RESOLUTION_FAILURE = 3
"""An input could not be fetched or its revision constraint is unsatisfiable."""

EXIT_COMPILATION_FAILURE = 4
"""The toolchain rejected the source tree."""

EXIT_PLATFORM_UNSUPPORTED = 5
"""The requested platform is not in the supported system list."""

EXIT_DESCRIPTOR_ERROR = 7
"""The descriptor file could not be parsed or validated."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C."""
