from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple

logger = logging.getLogger(__name__)


def _entry_name(entry: Any) -> str:
    """Catalog entries are either plain names or mappings with a 'name' key."""
    if isinstance(entry, Mapping):
        entry = entry.get("name", "")
    return str(entry or "").strip()


def _unique_names(entries: Iterable[Any]) -> Tuple[str, ...]:
    seen: Dict[str, str] = {}
    for entry in entries or ():
        name = _entry_name(entry)
        if name and name.lower() not in seen:
            seen[name.lower()] = name
    return tuple(seen.values())


def _compile(name: str) -> re.Pattern:
    # Word boundaries only where the name itself starts/ends with a word char,
    # so "C++" and ".NET" still match.
    prefix = r"\b" if re.match(r"\w", name) else ""
    suffix = r"\b" if re.search(r"\w$", name) else ""
    return re.compile(prefix + re.escape(name) + suffix, re.IGNORECASE)


@dataclass(frozen=True)
class EntityCatalog:
    """
    Known company and technology names.

    Backs the parser's known-entity lookup: any catalog name that appears as
    a whole word in a query is reported with its catalog casing.
    """
    companies: Tuple[str, ...] = ()
    technologies: Tuple[str, ...] = ()
    _patterns: Dict[str, List[Tuple[str, re.Pattern]]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self._patterns["companies"] = [(n, _compile(n)) for n in self.companies]
        self._patterns["technologies"] = [(n, _compile(n)) for n in self.technologies]

    @classmethod
    def from_entries(cls, companies: Iterable[Any] = (), technologies: Iterable[Any] = ()) -> "EntityCatalog":
        catalog = cls(companies=_unique_names(companies), technologies=_unique_names(technologies))
        logger.info(
            "Entity catalog built with %d companies and %d technologies.",
            len(catalog.companies),
            len(catalog.technologies),
        )
        return catalog

    def lookup(self, text: str, category: str) -> List[str]:
        """Return catalog names of ``category`` ('companies' or 'technologies') found in ``text``."""
        if not text:
            return []
        return [name for name, pattern in self._patterns.get(category, []) if pattern.search(text)]

    def __len__(self) -> int:
        return len(self.companies) + len(self.technologies)
