"""Deterministic output and distribution directories for one build request."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .request import BuildRequest


@dataclass(frozen=True, slots=True)
class PathSet:
    root: Path
    build_root: Path
    output_root: Path
    dist_root: Path
    archive_dir: Path
    deps_dir: Path
    opencv_dir: Path
    openalpr_dir: Path
    binding_dir: Path

    @classmethod
    def from_request(cls, root: Path, request: BuildRequest) -> "PathSet":
        build_root = root / "build"
        qualifier = Path(
            request.version,
            request.toolset.value,
            request.configuration.value.lower(),
            request.platform_leaf,
        )
        output_root = build_root / "artifacts" / qualifier
        return cls(
            root=root,
            build_root=build_root,
            output_root=output_root,
            dist_root=build_root / "dist" / qualifier,
            # Archives sit beside, never inside, the staged trees they pack.
            archive_dir=build_root / "dist" / request.version,
            deps_dir=output_root / "deps",
            opencv_dir=output_root / "opencv",
            openalpr_dir=output_root / "openalpr",
            binding_dir=output_root / "AlprNet",
        )


__all__ = ["PathSet"]
