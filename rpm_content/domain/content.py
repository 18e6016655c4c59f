"""Domain entities for RPM content visible in repository versions."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


DEFAULT_LIMIT = 500

ERRATA_TYPES = ("security", "bugfix", "enhancement")
ERRATA_SEVERITIES = ("Critical", "Important", "Moderate", "Low")
OTHER_TYPE = "other"
UNKNOWN_SEVERITY = "Unknown"


@dataclass(frozen=True)
class PackageSearchResult:
    """One distinct package name."""

    name: str
    summary: Optional[str]


@dataclass(frozen=True)
class PackageGroupSearchResult:
    """A package group, merged across every version that contributes it."""

    name: str
    id: str
    description: Optional[str]
    packages: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EnvironmentSearchResult:
    """A package environment, merged across every version that contributes it."""

    name: str
    id: str
    description: Optional[str]
    groups: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PackageListItem:
    """One package content unit."""

    id: str
    name: str
    version: str
    release: str
    arch: str
    epoch: str
    summary: Optional[str]


@dataclass(frozen=True)
class ModuleStream:
    """One module stream, distinct per (name, stream)."""

    name: str
    stream: str
    version: str
    context: str
    arch: str
    description: Optional[str]
    package_names: List[str] = field(default_factory=list)
    profiles: Dict[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrataListItem:
    """One advisory with its CVE references."""

    id: str
    errata_id: str
    title: Optional[str]
    summary: Optional[str]
    description: Optional[str]
    issued_date: Optional[str]
    updated_date: Optional[str]
    type: Optional[str]
    severity: Optional[str]
    reboot_suggested: bool
    cves: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PackageListFilters:
    """Case-insensitive substring filter on package name."""

    name: str = ""


@dataclass(frozen=True)
class ModuleStreamListFilters:
    """
    Module stream filters.

    Attributes:
        rpm_names: Only streams providing at least one of these package names
        search: Case-insensitive substring of the module name
    """

    rpm_names: List[str] = field(default_factory=list)
    search: str = ""


@dataclass(frozen=True)
class ErrataListFilters:
    """
    Advisory filters.

    Attributes:
        search: Case-insensitive substring of the advisory id or summary
        types: Advisory types; "other" also matches any unknown type
        severities: Severities; "Unknown" also matches any unknown severity
    """

    search: str = ""
    types: List[str] = field(default_factory=list)
    severities: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PageOptions:
    """Pagination and ordering requested by the caller."""

    offset: int = 0
    limit: int = 0
    sort_by: str = ""

    @property
    def effective_limit(self) -> int:
        return self.limit if self.limit > 0 else DEFAULT_LIMIT

    @property
    def effective_offset(self) -> int:
        return max(self.offset, 0)
