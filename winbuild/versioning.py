"""Version parsing and assembly-info stamping for the managed binding."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re

from .errors import AssemblyVersionMismatch

_VERSION_RE = re.compile(r"(\d+)\.(\d+)\.(\d+)")

_ATTRIBUTE_RE = re.compile(
    r"^(?P<indent>[ \t]*)\[\s*assembly\s*:\s*"
    r"(?P<name>AssemblyVersionAttribute|AssemblyFileVersionAttribute|AssemblyInformationalVersionAttribute)"
    r"\s*\(.*\)\s*\][ \t]*;?[ \t]*$",
    re.MULTILINE,
)

EXPECTED_ATTRIBUTES = 3


@dataclass(frozen=True, slots=True)
class Version:
    major: int
    minor: int
    patch: int
    text: str

    @property
    def numeric(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_version(text: str) -> Version:
    """Extract the first ``major.minor.patch`` triple embedded in ``text``."""

    match = _VERSION_RE.search(text)
    if match is None:
        raise ValueError(f"Version '{text}' does not contain a major.minor.patch number")
    major, minor, patch = (int(part) for part in match.groups())
    return Version(major=major, minor=minor, patch=patch, text=text)


def stamp_assembly_info(path: Path, version: Version) -> int:
    """Rewrite the three version attributes of a C++/CLI ``AssemblyInfo.cpp``.

    The numeric version goes into the assembly and file versions; the full
    version text into the informational version. The file is only written
    when exactly three attribute lines were replaced.
    """

    content = path.read_text(encoding="utf-8-sig")
    replacements = {
        "AssemblyVersionAttribute": version.numeric,
        "AssemblyFileVersionAttribute": version.numeric,
        "AssemblyInformationalVersionAttribute": version.text,
    }

    def _replace(match: re.Match[str]) -> str:
        name = match.group("name")
        return f'{match.group("indent")}[assembly:{name}("{replacements[name]}")];'

    stamped, replaced = _ATTRIBUTE_RE.subn(_replace, content)
    if replaced != EXPECTED_ATTRIBUTES:
        raise AssemblyVersionMismatch(path, replaced, EXPECTED_ATTRIBUTES)

    path.write_text(stamped, encoding="utf-8")
    return replaced


__all__ = ["EXPECTED_ATTRIBUTES", "Version", "parse_version", "stamp_assembly_info"]
