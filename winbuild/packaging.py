"""NuGet packaging and distribution archives."""
from __future__ import annotations

from pathlib import Path
from typing import List

from core.archive import ArchiveArtifact, ArchiveManager
from core.command_runner import CommandRunner

from .console import Console
from .context import BuildContext


def nuget_properties(context: BuildContext) -> str:
    request = context.request
    properties = {
        "version": request.version,
        "platform": request.architecture.value,
        "toolset": request.toolset.value,
        "configuration": request.configuration.value,
        "distdir": str(context.paths.dist_root),
    }
    return ";".join(f"{key}={value}" for key, value in properties.items())


def nuget_pack_command(context: BuildContext) -> List[str]:
    return [
        context.tool("nuget"),
        "pack",
        str(context.layout.nuspec),
        "-NoPackageAnalysis",
        "-OutputDirectory",
        str(context.paths.dist_root),
        "-Properties",
        nuget_properties(context),
    ]


def archive_name(context: BuildContext) -> str:
    request = context.request
    return (
        f"openalpr-{request.version}-{request.toolset.value}-"
        f"{request.configuration.value.lower()}-{request.platform_leaf}.tar.zst"
    )


class Packager:
    def __init__(self, runner: CommandRunner, console: Console) -> None:
        self._runner = runner
        self._console = console

    def pack(self, context: BuildContext) -> None:
        command = nuget_pack_command(context)
        self._console.debug(f"Running: {self._runner.format_command(command)}")
        self._runner.run(
            command,
            cwd=context.paths.dist_root,
            env=context.env(),
            note="nuget pack",
            stream=True,
        )

    def archive(self, context: BuildContext) -> Path:
        target = context.paths.archive_dir / archive_name(context)
        manager = ArchiveManager(self._console)
        return manager.create_archive(
            artifact=ArchiveArtifact(source_dir=context.paths.dist_root, label=context.request.platform_leaf),
            target_path=target,
        )


__all__ = ["Packager", "archive_name", "nuget_pack_command", "nuget_properties"]
