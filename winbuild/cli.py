"""Command line interface for the Windows build orchestrator."""
from __future__ import annotations

from argparse import ArgumentParser, ArgumentTypeError, Namespace
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Mapping, Type
import sys
import time

from core.command_runner import CommandRunner, SubprocessCommandRunner

from .config import load_layout
from .console import Console
from .errors import BuildError
from .paths import PathSet
from .pipeline import BuildPipeline
from .request import (
    Architecture,
    BuildRequest,
    BuildTarget,
    Configuration,
    GpuProfile,
    Toolset,
    parse_choice,
)
from .stages import BuildStages
from .toolchains import EnvironmentResolver
from .versioning import parse_version

EXIT_BUILD_ERROR = 1
EXIT_CONFIG_ERROR = 2


def _choice(enum_type: Type[Enum]) -> Callable[[str], Enum]:
    def convert(value: str) -> Enum:
        try:
            return parse_choice(enum_type, value)
        except ValueError as exc:
            raise ArgumentTypeError(str(exc)) from None

    convert.__name__ = enum_type.__name__
    return convert


def _values(enum_type: Type[Enum]) -> str:
    return ", ".join(str(member.value) for member in enum_type)


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="winbuild", description="Build OpenALPR and its dependencies with Visual Studio")
    parser.add_argument("--version", default="2.0.1", help="Library version to build (default: 2.0.1)")
    parser.add_argument(
        "--target",
        type=_choice(BuildTarget),
        default=BuildTarget.BUILD,
        help=f"Build target ({_values(BuildTarget)})",
    )
    parser.add_argument(
        "-c",
        "--configuration",
        type=_choice(Configuration),
        default=Configuration.RELEASE,
        help=f"Build configuration ({_values(Configuration)}; default: Release)",
    )
    parser.add_argument(
        "-p",
        "--platform",
        type=_choice(Architecture),
        default=Architecture.X64,
        help=f"Target platform ({_values(Architecture)}; default: x64)",
    )
    parser.add_argument(
        "-t",
        "--toolset",
        type=_choice(Toolset),
        default=Toolset.V120,
        help=f"Platform toolset ({_values(Toolset)}; default: v120)",
    )
    parser.add_argument(
        "-g",
        "--gpu",
        type=_choice(GpuProfile),
        default=GpuProfile.NONE,
        help=f"CUDA profile ({_values(GpuProfile)}; default: None)",
    )
    parser.add_argument("--clean", action="store_true", help="Delete output and distribution directories first")
    parser.add_argument("-r", "--root", type=Path, default=None, help="Workspace root (default: current directory)")
    parser.add_argument("--config", type=Path, default=None, help="Source layout file (TOML, JSON or YAML)")
    parser.add_argument("-n", "--dry-run", action="store_true", help="Print the stage plan without running it")
    parser.add_argument("--archive", action="store_true", help="Also write a .tar.zst of the distribution directory")
    parser.add_argument(
        "-l",
        "--log",
        choices=list(Console.LEVELS),
        default="info",
        help="Log level (default: info)",
    )
    return parser.parse_args(list(argv))


def _build_request(args: Namespace) -> BuildRequest:
    parse_version(args.version)
    return BuildRequest(
        version=args.version,
        target=args.target,
        configuration=args.configuration,
        architecture=args.platform,
        toolset=args.toolset,
        gpu=args.gpu,
        clean=args.clean,
    )


def run(
    args: Namespace,
    *,
    console: Console,
    runner: CommandRunner | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    started = time.monotonic()
    root = (args.root or Path.cwd()).resolve()

    try:
        request = _build_request(args)
        layout = load_layout(root, args.config, environ=environ)
    except (ValueError, TypeError) as exc:
        console.error(str(exc))
        return EXIT_CONFIG_ERROR

    runner = runner or SubprocessCommandRunner()
    paths = PathSet.from_request(root, request)
    try:
        resolver = EnvironmentResolver(runner, console=console, environ=environ)
        context = resolver.resolve(request, paths, layout, capture=not args.dry_run)
        stages = BuildStages(runner, console, archive=args.archive).stages(context)
        BuildPipeline(context, stages, console=console, dry_run=args.dry_run).run()
    except BuildError as exc:
        console.error(str(exc))
        return EXIT_BUILD_ERROR

    elapsed = timedelta(seconds=round(time.monotonic() - started))
    if args.dry_run:
        console.info(f"Dry run finished in {elapsed}")
    else:
        console.success(f"Build finished in {elapsed}; artifacts in {paths.dist_root}")
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    console = Console(level=args.log, dry_run=args.dry_run)
    return run(args, console=console)


__all__ = ["main", "run"]
