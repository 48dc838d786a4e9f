"""Exception hierarchy for lakebuild.

All exceptions inherit from :class:`LakebuildError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`lakebuild.exit_codes`.
The top-level error handler in :func:`lakebuild.app.main` catches
``LakebuildError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Every failure is fatal: there is no retry and no partial output.

Subclass hierarchy::

    LakebuildError (exit 1)
    +-- ConfigError                 (exit 1)
    +-- InvalidUsageError           (exit 2)
    +-- ResolutionError             (exit 3)
    |   +-- PackageNotFoundError
    |   +-- PackageNotAvailableError
    +-- CompilationError            (exit 4)
    +-- PlatformUnsupportedError    (exit 5)
    +-- DescriptorError             (exit 7)
"""

from lakebuild.exit_codes import (
    EXIT_COMPILATION_FAILURE,
    EXIT_DESCRIPTOR_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_PLATFORM_UNSUPPORTED,
    EXIT_RESOLUTION_FAILURE,
)


class LakebuildError(Exception):
    """Base exception for all lakebuild errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(LakebuildError):
    """Raised for configuration problems (invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class InvalidUsageError(LakebuildError):
    """Raised for invalid CLI arguments such as a malformed system identifier."""

    exit_code = EXIT_INVALID_USAGE


class DescriptorError(LakebuildError):
    """Raised when a descriptor file cannot be parsed or fails validation."""

    exit_code = EXIT_DESCRIPTOR_ERROR


class ResolutionError(LakebuildError):
    """Raised when an input reference cannot be fetched or pinned.

    Covers unreachable locations, unsatisfiable revision constraints, and
    lockfiles that do not match the descriptor. Aborts evaluation for every
    platform.
    """

    exit_code = EXIT_RESOLUTION_FAILURE


class PackageNotFoundError(ResolutionError):
    """Raised when an attribute does not exist in the resolved package set."""


class PackageNotAvailableError(ResolutionError):
    """Raised when a package exists but is not available on the requested platform."""


class CompilationError(LakebuildError):
    """Raised when the toolchain fails to turn the source tree into a binary."""

    exit_code = EXIT_COMPILATION_FAILURE


class PlatformUnsupportedError(LakebuildError):
    """Raised when a platform is not in the supported system list."""

    exit_code = EXIT_PLATFORM_UNSUPPORTED
