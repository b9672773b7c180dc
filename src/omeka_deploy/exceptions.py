"""Deployment exceptions.

Every failure carries a human-readable message naming the component involved,
plus an optional context dict for callers that want structured details.
"""


class DeployError(Exception):
    """Base exception for install/update operations."""

    def __init__(self, message: str, context: dict | None = None):
        """Initialize with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dict with additional context (component, revision, paths)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class RegistryError(DeployError):
    """Registry data file is missing, malformed or inconsistent."""


class UnknownComponentError(DeployError):
    """Component name is not in the registry."""

    def __init__(self, name: str):
        super().__init__(f"Unknown component: {name}", context={"component": name})
        self.name = name


class FetchFailedError(DeployError):
    """Archive download failed (network error or revision not found)."""

    def __init__(self, component: str, revision: str, status: int | None = None):
        detail = f" (HTTP {status})" if status else ""
        super().__init__(
            f"Failed to download {component}{detail}. Check if branch/tag '{revision}' exists.",
            context={"component": component, "revision": revision, "status": status},
        )
        self.component = component
        self.revision = revision


class ExtractionAmbiguousError(DeployError):
    """Archive does not contain exactly one top-level directory."""

    def __init__(self, component: str, found: list[str] | None = None):
        found = found or []
        super().__init__(
            f"Failed to find a single extracted directory for {component} (found {len(found)})",
            context={"component": component, "found": found},
        )
        self.component = component


class InstallError(DeployError):
    """Placing a component into its destination failed."""


class DependencyFailedError(DeployError):
    """A prerequisite of a component could not be installed."""

    def __init__(self, component: str, dependency: str, reason: str = ""):
        message = f"Failed to install dependency {dependency} of {component}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, context={"component": component, "dependency": dependency})
        self.component = component
        self.dependency = dependency


class CyclicDependencyError(DeployError):
    """Registry declares a dependency cycle."""

    def __init__(self, chain: list[str]):
        super().__init__(
            f"Cyclic dependency: {' -> '.join(chain)}",
            context={"chain": chain},
        )
        self.chain = chain


class VersionResolutionError(DeployError):
    """Latest release version could not be determined."""


class DatabaseUnreachableError(DeployError):
    """Database did not become reachable in time."""


class ReleaseNotFoundError(DeployError):
    """Requested core release does not exist at the source host."""

    def __init__(self, version: str, url: str, status: int | None = None):
        super().__init__(
            f"Release v{version} not found. HTTP code: {status}",
            context={"version": version, "url": url, "status": status},
        )
        self.version = version


class RuntimeUnavailableError(DeployError):
    """External program (composer, php, container runtime) is missing or failed."""
