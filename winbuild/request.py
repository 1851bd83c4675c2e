"""Immutable build inputs."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Type, TypeVar


_E = TypeVar("_E", bound=Enum)


class BuildTarget(str, Enum):
    BUILD = "Build"


class Configuration(str, Enum):
    DEBUG = "Debug"
    RELEASE = "Release"

    @property
    def is_debug(self) -> bool:
        return self is Configuration.DEBUG


class Architecture(str, Enum):
    WIN32 = "Win32"
    X64 = "x64"

    @property
    def is_64bit(self) -> bool:
        return self is Architecture.X64

    @property
    def vcvars_argument(self) -> str:
        return "amd64" if self.is_64bit else "x86"


class Toolset(str, Enum):
    V100 = "v100"
    V110 = "v110"
    V120 = "v120"
    V140 = "v140"


class GpuProfile(str, Enum):
    NONE = "None"
    AUTO = "Auto"
    KEPLER = "Kepler"
    MAXWELL = "Maxwell"

    @property
    def enabled(self) -> bool:
        return self is not GpuProfile.NONE


def parse_choice(enum_type: Type[_E], value: str | _E) -> _E:
    """Case-insensitively map ``value`` onto a member of ``enum_type``."""

    if isinstance(value, enum_type):
        return value
    text = str(value).strip().lower()
    for member in enum_type:
        if str(member.value).lower() == text:
            return member
    allowed = ", ".join(str(member.value) for member in enum_type)
    raise ValueError(f"Invalid {enum_type.__name__} '{value}'. Expected one of: {allowed}")


@dataclass(frozen=True, slots=True)
class BuildRequest:
    version: str = "2.0.1"
    target: BuildTarget = BuildTarget.BUILD
    configuration: Configuration = Configuration.RELEASE
    architecture: Architecture = Architecture.X64
    toolset: Toolset = Toolset.V120
    gpu: GpuProfile = GpuProfile.NONE
    clean: bool = False

    def __post_init__(self) -> None:
        if not self.version or not self.version.strip():
            raise ValueError("Version must not be empty")
        if any(sep in self.version for sep in ("/", "\\")):
            raise ValueError(f"Version '{self.version}' must not contain path separators")

    @property
    def platform_leaf(self) -> str:
        """Directory name shared by the output and distribution roots."""
        if self.gpu.enabled:
            return f"{self.architecture.value}_CUDA_{self.gpu.value}"
        return self.architecture.value


__all__ = [
    "Architecture",
    "BuildRequest",
    "BuildTarget",
    "Configuration",
    "GpuProfile",
    "Toolset",
    "parse_choice",
]
