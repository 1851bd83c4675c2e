"""Visual Studio toolchain discovery and environment capture."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping
import os
import shutil

from core.command_runner import CommandError, CommandRunner

from .config import SourceLayout
from .console import Console
from .context import BuildContext
from .errors import ToolMissing, ToolchainNotInstalled
from .paths import PathSet
from .request import Architecture, BuildRequest, Toolset


@dataclass(frozen=True, slots=True)
class _ToolchainEntry:
    tools_version: str
    product_version: str
    install_variable: str
    generator: str


TOOLCHAIN_TABLE: Dict[Toolset, _ToolchainEntry] = {
    Toolset.V100: _ToolchainEntry("4.0", "10.0", "VS100COMNTOOLS", "Visual Studio 10 2010"),
    Toolset.V110: _ToolchainEntry("4.0", "11.0", "VS110COMNTOOLS", "Visual Studio 11 2012"),
    Toolset.V120: _ToolchainEntry("12.0", "12.0", "VS120COMNTOOLS", "Visual Studio 12 2013"),
    Toolset.V140: _ToolchainEntry("14.0", "14.0", "VS140COMNTOOLS", "Visual Studio 14 2015"),
}

REQUIRED_TOOLS: tuple[str, ...] = ("cmake", "msbuild", "git", "nuget")


@dataclass(frozen=True, slots=True)
class ToolchainProfile:
    toolset: Toolset
    tools_version: str
    product_version: str
    installation_root: Path
    setup_script: Path
    generator: str


def _lookup(environment: Mapping[str, str], key: str) -> str | None:
    # Windows environment names are case-insensitive ("Path" vs "PATH").
    if key in environment:
        return environment[key]
    upper = key.upper()
    for name, value in environment.items():
        if name.upper() == upper:
            return value
    return None


def parse_environment_dump(text: str) -> Dict[str, str]:
    """Parse the output of ``set`` into a mapping."""

    environment: Dict[str, str] = {}
    for line in text.splitlines():
        # cmd reports per-drive working directories as "=C:=C:\...".
        if not line or line.startswith("=") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        environment[key] = value.rstrip("\r")
    return environment


class EnvironmentResolver:
    """Resolves a :class:`BuildContext` from a request.

    ``environ`` is the environment the toolchain variables are read from; it is
    never modified. Subprocesses later receive the captured mapping instead.
    """

    def __init__(
        self,
        runner: CommandRunner,
        *,
        console: Console | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._runner = runner
        self._console = console or Console(level="error")
        self._environ = dict(os.environ if environ is None else environ)

    def resolve_profile(self, toolset: Toolset, architecture: Architecture) -> ToolchainProfile:
        entry = TOOLCHAIN_TABLE.get(toolset)
        if entry is None:
            raise ToolchainNotInstalled(str(toolset), "unsupported toolset")

        raw_root = _lookup(self._environ, entry.install_variable)
        if not raw_root:
            raise ToolchainNotInstalled(toolset.value, f"environment variable {entry.install_variable} is not set")

        installation_root = Path(raw_root)
        if not installation_root.is_dir():
            raise ToolchainNotInstalled(toolset.value, f"'{installation_root}' does not exist")

        setup_script = (installation_root / ".." / ".." / "VC" / "vcvarsall.bat").resolve()
        if not setup_script.is_file():
            raise ToolchainNotInstalled(toolset.value, f"setup script '{setup_script}' does not exist")

        generator = entry.generator
        if architecture.is_64bit:
            generator = f"{generator} Win64"

        return ToolchainProfile(
            toolset=toolset,
            tools_version=entry.tools_version,
            product_version=entry.product_version,
            installation_root=installation_root,
            setup_script=setup_script,
            generator=generator,
        )

    def capture_environment(self, profile: ToolchainProfile, architecture: Architecture) -> Dict[str, str]:
        """Run the toolchain setup script in a throwaway shell and return its environment."""

        command = [
            "cmd",
            "/d",
            "/c",
            "call",
            str(profile.setup_script),
            architecture.vcvars_argument,
            ">nul",
            "&&",
            "set",
        ]
        self._console.debug(f"Capturing toolchain environment: {self._runner.format_command(command)}")
        try:
            result = self._runner.run(command, env=self._environ, note="vcvarsall")
        except CommandError as exc:
            raise ToolchainNotInstalled(
                profile.toolset.value, f"setup script failed with exit code {exc.exit_code}"
            ) from exc

        environment = parse_environment_dump(result.stdout)
        if not environment:
            raise ToolchainNotInstalled(profile.toolset.value, "setup script produced no environment")
        return environment

    def resolve_tools(
        self,
        environment: Mapping[str, str],
        names: Iterable[str] = REQUIRED_TOOLS,
    ) -> Dict[str, str]:
        search_path = _lookup(environment, "PATH")
        tools: Dict[str, str] = {}
        for name in names:
            located = shutil.which(name, path=search_path)
            if located is None:
                raise ToolMissing(name)
            self._console.debug(f"Using {name}: {located}")
            tools[name] = located
        return tools

    def resolve(
        self,
        request: BuildRequest,
        paths: PathSet,
        layout: SourceLayout,
        *,
        capture: bool = True,
    ) -> BuildContext:
        """Build the context for ``request``.

        With ``capture=False`` the setup script is not run: the context carries
        the resolver's own environment and bare tool names, which is enough to
        describe a plan.
        """

        profile = self.resolve_profile(request.toolset, request.architecture)
        self._console.info(f"Toolchain {profile.toolset.value}: {profile.installation_root} ({profile.generator})")
        if capture:
            environment = self.capture_environment(profile, request.architecture)
            tools = self.resolve_tools(environment)
        else:
            environment = dict(self._environ)
            tools = {}
        return BuildContext(
            request=request,
            profile=profile,
            paths=paths,
            layout=layout,
            environment=environment,
            tools=tools,
        )


__all__ = [
    "EnvironmentResolver",
    "REQUIRED_TOOLS",
    "TOOLCHAIN_TABLE",
    "ToolchainProfile",
    "parse_environment_dump",
]
