"""Dependency resolver - Install missing prerequisites before a component.

Walks the registry's dependency edges depth-first. Installation state and the
install action are injected so the resolver stays independent of how
components are fetched and placed.
"""

import logging
from collections.abc import Awaitable
from collections.abc import Callable

from .exceptions import CyclicDependencyError
from .exceptions import DependencyFailedError
from .exceptions import DeployError
from .registry import Registry
from .schema import ComponentEntry

logger = logging.getLogger(__name__)


class DependencyResolver:
    """
    Ensure a component's dependencies are installed, in registry order.

    Example:
        >>> resolver = DependencyResolver(registry, installer.is_installed, installer.install_entry)
        >>> await resolver.ensure_installed("SearchSolr")  # installs Common, then AdvancedSearch
    """

    def __init__(
        self,
        registry: Registry,
        is_installed: Callable[[str], bool],
        install: Callable[[ComponentEntry], Awaitable[object]],
    ):
        """Initialize resolver.

        Args:
            registry: Component registry
            is_installed: Installation state check for a component name
            install: Coroutine installing a single component (no dependency handling)
        """
        self.registry = registry
        self.is_installed = is_installed
        self.install = install

    async def ensure_installed(self, name: str) -> list[str]:
        """
        Install every missing dependency of name (not name itself).

        Args:
            name: Component whose dependencies must be present

        Returns:
            Names of dependencies installed by this call, in install order

        Raises:
            UnknownComponentError: If name is not registered
            CyclicDependencyError: If the registry declares a cycle
            DependencyFailedError: If any dependency fails (remaining ones are not attempted)
        """
        installed: list[str] = []
        await self._ensure(name, [], installed)
        return installed

    async def _ensure(self, name: str, path: list[str], installed: list[str]) -> None:
        entry = self.registry.lookup(name)
        if name in path:
            raise CyclicDependencyError([*path, name])

        if not entry.dependencies:
            return

        logger.info(f"Checking dependencies for {name}: {' '.join(entry.dependencies)}")
        path = [*path, name]

        for dependency in entry.dependencies:
            if self.is_installed(dependency):
                logger.info(f"Dependency {dependency} is already installed")
                continue
            if dependency in path:
                raise CyclicDependencyError([*path, dependency])

            logger.info(f"Installing required dependency: {dependency}")
            await self._ensure(dependency, path, installed)
            try:
                await self.install(self.registry.lookup(dependency))
            except (DependencyFailedError, CyclicDependencyError):
                raise
            except DeployError as e:
                logger.error(f"Failed to install dependency: {dependency}")
                raise DependencyFailedError(name, dependency, e.message) from e
            installed.append(dependency)
