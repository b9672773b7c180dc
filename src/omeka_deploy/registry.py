"""Component registry - Map component names to source repositories.

The registry is static data parsed once from a TOML file. Nothing mutates it
after load; maintainers edit the data file.
"""

import logging
import tomllib
from pathlib import Path
from types import MappingProxyType

from pydantic import ValidationError

from .exceptions import RegistryError
from .exceptions import UnknownComponentError
from .schema import ComponentEntry
from .schema import ComponentKind
from .schema import SourceHost

logger = logging.getLogger(__name__)

BUNDLED_REGISTRY = Path(__file__).parent / "data" / "registry.toml"

# TOML table names -> component kinds
_KIND_TABLES = {
    "modules": ComponentKind.MODULE,
    "themes": ComponentKind.THEME,
}


class Registry:
    """
    Immutable lookup table of installable modules and themes.

    Names are unique across hosts and kinds; a collision is rejected at load
    time instead of silently preferring one table.
    """

    def __init__(
        self,
        entries: list[ComponentEntry],
        defaults: dict[ComponentKind, tuple[str, ...]] | None = None,
    ):
        """Build registry from entries (validated for duplicates and dangling dependencies).

        Args:
            entries: Component entries
            defaults: Component names the bootstrapper installs by default, per kind

        Raises:
            RegistryError: If a name is declared twice or a dependency is unknown
        """
        table: dict[str, ComponentEntry] = {}
        for entry in entries:
            if entry.name in table:
                existing = table[entry.name]
                raise RegistryError(
                    f"Component '{entry.name}' is declared more than once "
                    f"({existing.host.value}/{existing.kind.value} and {entry.host.value}/{entry.kind.value})",
                    context={"component": entry.name},
                )
            table[entry.name] = entry

        for entry in table.values():
            for dependency in entry.dependencies:
                if dependency not in table:
                    raise RegistryError(
                        f"Component '{entry.name}' depends on unknown component '{dependency}'",
                        context={"component": entry.name, "dependency": dependency},
                    )

        defaults = defaults or {}
        for kind, names in defaults.items():
            for name in names:
                if name not in table or table[name].kind != kind:
                    raise RegistryError(
                        f"Default {kind.value} '{name}' is not a registered {kind.value}",
                        context={"component": name},
                    )

        self._entries = MappingProxyType(table)
        self._defaults = MappingProxyType({kind: tuple(names) for kind, names in defaults.items()})

    @classmethod
    def load(cls, path: Path | None = None) -> "Registry":
        """
        Load registry from a TOML data file.

        Args:
            path: Registry file (defaults to the bundled registry.toml)

        Returns:
            Registry instance

        Raises:
            RegistryError: If the file is missing, not valid TOML, or inconsistent
        """
        path = path or BUNDLED_REGISTRY
        if not path.exists():
            raise RegistryError(f"Registry file not found: {path}", context={"path": str(path)})

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise RegistryError(f"Invalid registry file {path}: {e}", context={"path": str(path)}) from e

        entries = []
        for host in SourceHost:
            host_tables = data.get(host.value, {})
            for table_name, kind in _KIND_TABLES.items():
                for name, raw in host_tables.get(table_name, {}).items():
                    try:
                        entries.append(
                            ComponentEntry(
                                name=name,
                                kind=kind,
                                host=host,
                                repo=raw.get("repo", ""),
                                revision=raw.get("revision", ""),
                                dependencies=tuple(raw.get("dependencies", [])),
                                preinstalled=raw.get("preinstalled", False),
                            )
                        )
                    except (ValidationError, AttributeError) as e:
                        raise RegistryError(
                            f"Invalid registry entry '{name}' in [{host.value}.{table_name}]: {e}",
                            context={"component": name, "path": str(path)},
                        ) from e

        raw_defaults = data.get("defaults", {})
        defaults = {kind: tuple(raw_defaults.get(table_name, [])) for table_name, kind in _KIND_TABLES.items()}

        registry = cls(entries, defaults=defaults)
        logger.debug(f"Loaded {len(registry)} components from {path}")
        return registry

    def lookup(self, name: str) -> ComponentEntry:
        """
        Look up a component by exact (case-sensitive) name.

        Raises:
            UnknownComponentError: If the name is not registered
        """
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownComponentError(name)
        return entry

    def entries(self, kind: ComponentKind | None = None) -> list[ComponentEntry]:
        """List entries sorted by name, optionally restricted to one kind."""
        return sorted(
            (e for e in self._entries.values() if kind is None or e.kind == kind),
            key=lambda e: e.name,
        )

    def defaults(self, kind: ComponentKind) -> list[ComponentEntry]:
        """Entries the bootstrapper installs on every start, in declared order."""
        return [self._entries[name] for name in self._defaults.get(kind, ())]

    @property
    def names(self) -> list[str]:
        return sorted(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)
