"""omeka-deploy - Install and update Omeka S, its modules and themes.

Public API: registry lookup, archive fetching and extraction, dependency-aware
module/theme installation, first-run core bootstrap and core updates.
"""

from .bootstrap import BootstrapState
from .bootstrap import CoreBootstrapper
from .config import Settings
from .exceptions import CyclicDependencyError
from .exceptions import DatabaseUnreachableError
from .exceptions import DependencyFailedError
from .exceptions import DeployError
from .exceptions import ExtractionAmbiguousError
from .exceptions import FetchFailedError
from .exceptions import InstallError
from .exceptions import RegistryError
from .exceptions import ReleaseNotFoundError
from .exceptions import RuntimeUnavailableError
from .exceptions import UnknownComponentError
from .exceptions import VersionResolutionError
from .extractor import extract_archive
from .fetcher import ArchiveFetcher
from .installer import ComponentInstaller
from .layout import AppLayout
from .registry import Registry
from .resolver import DependencyResolver
from .schema import ComponentEntry
from .schema import ComponentKind
from .schema import InstallResult
from .schema import InstallStatus
from .schema import SourceHost
from .updater import CoreUpdater

__all__ = [
    # Configuration
    "Settings",
    "AppLayout",
    # Registry
    "Registry",
    "ComponentEntry",
    "ComponentKind",
    "SourceHost",
    # Fetching
    "ArchiveFetcher",
    "extract_archive",
    # Installation
    "ComponentInstaller",
    "DependencyResolver",
    "InstallResult",
    "InstallStatus",
    # Core
    "BootstrapState",
    "CoreBootstrapper",
    "CoreUpdater",
    # Exceptions
    "DeployError",
    "RegistryError",
    "UnknownComponentError",
    "FetchFailedError",
    "ExtractionAmbiguousError",
    "InstallError",
    "DependencyFailedError",
    "CyclicDependencyError",
    "VersionResolutionError",
    "DatabaseUnreachableError",
    "ReleaseNotFoundError",
    "RuntimeUnavailableError",
]

__version__ = "0.1.0"
