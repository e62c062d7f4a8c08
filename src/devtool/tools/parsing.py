"""Pure parsers for updater command output.

Nothing here runs a process; every function takes captured text and returns
plain data, so the updaters stay thin and the parsing is easy to test.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from devtool.engine.models import UpgradeDetail

# -----------------------------------------------------------------------------
# Homebrew
# -----------------------------------------------------------------------------


class OutdatedPackage(BaseModel):
    """One entry of ``brew outdated``."""

    model_config = ConfigDict(extra="ignore")

    name: str
    installed_versions: list[str] = Field(default_factory=list)
    current_version: str

    @field_validator("installed_versions", mode="before")
    @classmethod
    def coerce_versions(cls, v: object) -> object:
        # casks report a bare string on some Homebrew releases
        if isinstance(v, str):
            return [v]
        return v

    @property
    def installed_version(self) -> str:
        return self.installed_versions[0] if self.installed_versions else ""


class OutdatedReport(BaseModel):
    model_config = ConfigDict(extra="ignore")

    formulae: list[OutdatedPackage] = Field(default_factory=list)
    casks: list[OutdatedPackage] = Field(default_factory=list)


_OUTDATED_LINE = re.compile(
    r"^(?P<name>\S+)\s+\(?(?P<installed>[^()]+?)\)?\s+(?:->|<|!=)\s+(?P<current>\S+)$"
)


def parse_brew_outdated_json(output: str) -> list[OutdatedPackage] | None:
    """Parse ``brew outdated --json=v2`` output; None when it is not valid JSON."""
    text = output.strip()
    start = text.find("{")
    if start < 0:
        return None
    try:
        report = OutdatedReport.model_validate_json(text[start:])
    except ValidationError:
        return None
    return [pkg for pkg in [*report.formulae, *report.casks] if pkg.installed_versions]


def parse_brew_outdated_text(output: str) -> list[OutdatedPackage]:
    """Parse ``brew outdated --verbose`` lines.

    Both ``name 1.0 -> 1.1`` and ``name (1.0) < 1.1`` forms are accepted.
    """
    packages: list[OutdatedPackage] = []
    for line in output.splitlines():
        match = _OUTDATED_LINE.match(line.strip())
        if match is None:
            continue
        installed = [v.strip() for v in match.group("installed").split(",") if v.strip()]
        packages.append(
            OutdatedPackage(
                name=match.group("name"),
                installed_versions=installed,
                current_version=match.group("current"),
            )
        )
    return packages


def brew_upgraded(
    before: list[OutdatedPackage], after: list[OutdatedPackage]
) -> list[UpgradeDetail]:
    """Packages outdated before the upgrade and no longer outdated after it."""
    still_outdated = {pkg.name for pkg in after}
    return [
        UpgradeDetail.upgrade(pkg.name, pkg.installed_version, pkg.current_version)
        for pkg in before
        if pkg.name not in still_outdated
    ]


# -----------------------------------------------------------------------------
# Rustup
# -----------------------------------------------------------------------------

_CHANNEL_MARKERS = ("stable-", "beta-", "nightly-")
_RUSTUP_CHANGED = re.compile(r"\b(updated|installed)\b")


def parse_toolchain_list(output: str) -> list[str]:
    """Toolchain names from ``rustup toolchain list``, default markers stripped."""
    toolchains: list[str] = []
    for line in output.splitlines():
        line = line.strip()
        if not any(marker in line for marker in _CHANNEL_MARKERS):
            continue
        name = line.split()[0]
        if name not in toolchains:
            toolchains.append(name)
    return toolchains


def extract_rust_version(output: str) -> str | None:
    """``rustc 1.70.0 (90c541806 2023-05-31)`` -> ``1.70.0``."""
    text = output.strip()
    if not text.startswith("rustc"):
        return None
    parts = text.split()
    if len(parts) < 2 or "." not in parts[1]:
        return None
    return parts[1]


def rustup_unchanged(output: str) -> bool:
    """True when ``rustup update`` reports nothing but unchanged toolchains."""
    lowered = output.lower()
    if "unchanged" not in lowered and "up to date" not in lowered:
        return False
    return _RUSTUP_CHANGED.search(lowered) is None


# -----------------------------------------------------------------------------
# Mise
# -----------------------------------------------------------------------------

MISE_MARKER = re.compile(r"[a-zA-Z0-9_+\-.]+@[0-9]+(?:\.[0-9]+)+")


def parse_mise_versions(output: str) -> dict[str, str]:
    """Parse ``mise ls --current`` into ``{tool: version}``.

    Accepts ``tool@version`` and whitespace-separated ``tool version ...``
    lines; JSON output and lines without a digit in the version are skipped.
    """
    versions: dict[str, str] = {}
    if output.strip().startswith("{"):
        return versions

    for line in output.splitlines():
        line = line.strip()
        if not line or line[0] in '{}"':
            continue

        if "@" in line:
            name, _, rest = line.partition("@")
            version = rest.split()[0] if rest.split() else ""
            if name.strip() and version:
                versions[name.strip()] = version
            continue

        parts = line.split()
        if len(parts) >= 2 and any(ch.isdigit() for ch in parts[1]):
            versions[parts[0]] = parts[1]
    return versions


def mise_markers(output: str) -> dict[str, list[str]]:
    """Collect distinct ``name@x.y.z`` versions mentioned in ``mise up`` output."""
    found: dict[str, list[str]] = {}
    for match in MISE_MARKER.finditer(output):
        name, _, version = match.group(0).partition("@")
        seen = found.setdefault(name, [])
        if version not in seen:
            seen.append(version)
    return found


def details_from_markers(markers: dict[str, list[str]]) -> list[UpgradeDetail]:
    details: list[UpgradeDetail] = []
    for name, versions in markers.items():
        if len(versions) >= 2:
            details.append(UpgradeDetail.upgrade(name, versions[0], versions[-1]))
        elif versions:
            details.append(UpgradeDetail.new_installation(name, versions[0]))
    return details


# -----------------------------------------------------------------------------
# Shared
# -----------------------------------------------------------------------------


def version_key(version: str) -> tuple[int, ...]:
    """Numeric components of a version string, for ordering only."""
    return tuple(int(part) for part in re.findall(r"\d+", version))


def diff_versions(before: dict[str, str], after: dict[str, str]) -> list[UpgradeDetail]:
    """Compare two ``{name: version}`` snapshots, in ``after`` order."""
    details: list[UpgradeDetail] = []
    for name, new_version in after.items():
        old_version = before.get(name)
        if old_version is None:
            details.append(UpgradeDetail.new_installation(name, new_version))
        elif old_version != new_version:
            if version_key(new_version) < version_key(old_version):
                details.append(UpgradeDetail.downgrade(name, old_version, new_version))
            else:
                details.append(UpgradeDetail.upgrade(name, old_version, new_version))
    return details


__all__ = [
    "MISE_MARKER",
    "OutdatedPackage",
    "brew_upgraded",
    "details_from_markers",
    "diff_versions",
    "extract_rust_version",
    "mise_markers",
    "parse_brew_outdated_json",
    "parse_brew_outdated_text",
    "parse_mise_versions",
    "parse_toolchain_list",
    "rustup_unchanged",
    "version_key",
]
