"""Custom exceptions raised by the resolver and its collaborators."""

from __future__ import annotations


class MetadataFetchError(RuntimeError):
    """Raised when a package repository cannot be retrieved or parsed."""


class ManifestError(ValueError):
    """Raised when a project manifest document is malformed."""


class PlanFinalizedError(RuntimeError):
    """Raised when pending changes are touched after they were built."""


class AddPackageError(Exception):
    """Base class for failures while planning package additions.

    New subclasses may be introduced; catch this class to handle all of them.
    """


class DependencyNotFound(AddPackageError):
    def __init__(self, dependency_name: str):
        self.dependency_name = dependency_name
        super().__init__(f"Package {dependency_name} (maybe dependencies of the package) not found")


class UpgradingNonLockedPackage(AddPackageError):
    def __init__(self, package_name: str):
        self.package_name = package_name
        super().__init__(f"Package {package_name} is not locked, so it cannot be upgraded")


class UnityInstallationError(RuntimeError):
    """Raised when a Unity installation cannot be registered."""

    ALREADY_EXISTS = "already_exists"
    TIMED_OUT = "timed_out"
    INVALID_INSTALLATION = "invalid_installation"
    INVALID_VERSION = "invalid_version"

    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(message)
