"""The immutable value threaded through every stage."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Mapping

from .config import SourceLayout
from .paths import PathSet
from .request import BuildRequest

if TYPE_CHECKING:  # pragma: no cover
    from .toolchains import ToolchainProfile


@dataclass(frozen=True, slots=True)
class BuildContext:
    request: BuildRequest
    profile: "ToolchainProfile"
    paths: PathSet
    layout: SourceLayout
    environment: Mapping[str, str] = field(default_factory=dict)
    tools: Mapping[str, str] = field(default_factory=dict)

    def tool(self, name: str) -> str:
        """Resolved executable for ``name``; falls back to the bare name."""
        return self.tools.get(name, name)

    def env(self) -> Dict[str, str]:
        """A fresh copy of the working environment for one invocation."""
        return dict(self.environment)


__all__ = ["BuildContext"]
