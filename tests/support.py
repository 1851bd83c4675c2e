from __future__ import annotations

from dataclasses import replace
from io import StringIO
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Tuple
import textwrap

import pygit2

from core.command_runner import CommandError, CommandResult, CommandRunner
from winbuild.config import SourceLayout
from winbuild.console import Console
from winbuild.context import BuildContext
from winbuild.paths import PathSet
from winbuild.request import Architecture, BuildRequest, Toolset
from winbuild.toolchains import ToolchainProfile


PROJECT_TEMPLATE = textwrap.dedent(
    """\
    <?xml version="1.0" encoding="utf-8"?>
    <Project DefaultTargets="Build" ToolsVersion="12.0" xmlns="http://schemas.microsoft.com/developer/msbuild/2003">
      <PropertyGroup Label="Globals">
        <RootNamespace>{name}</RootNamespace>
        <WindowsTargetPlatformVersion>8.1</WindowsTargetPlatformVersion>
      </PropertyGroup>
      <ItemDefinitionGroup Condition="'$(Configuration)|$(Platform)'=='Release|x64'">
        <ClCompile>
          <AdditionalIncludeDirectories>old\\include;%(AdditionalIncludeDirectories)</AdditionalIncludeDirectories>
        </ClCompile>
        <Link>
          <AdditionalDependencies>old.lib;%(AdditionalDependencies)</AdditionalDependencies>
          <AdditionalLibraryDirectories>old\\lib</AdditionalLibraryDirectories>
        </Link>
        <PostBuildEvent>
          <Command>copy $(TargetPath) ..\\..\\lib</Command>
        </PostBuildEvent>
      </ItemDefinitionGroup>
      <ItemDefinitionGroup Condition="'$(Configuration)|$(Platform)'=='Debug|x64'">
        <PostBuildEvent>
          <Command>copy $(TargetPath) ..\\..\\lib</Command>
        </PostBuildEvent>
      </ItemDefinitionGroup>
    </Project>
    """
)

ASSEMBLY_INFO = textwrap.dedent(
    """\
    #include "stdafx.h"

    using namespace System::Reflection;

    [assembly:AssemblyTitleAttribute("AlprNet")];
    [assembly:AssemblyVersionAttribute("1.0.0")];
    [assembly:AssemblyFileVersionAttribute("1.0.0")];
    [assembly:AssemblyInformationalVersionAttribute("1.0.0-dev")];
    """
)

OPENALPR_CONF = textwrap.dedent(
    """\
    ; Specify the path to the runtime data directory
    runtime_dir = ${CMAKE_INSTALL_PREFIX}/share/openalpr/runtime_data

    ocr_img_size_percent = 1.33333333
    """
)


def quiet_console(level: str = "debug", *, dry_run: bool = False) -> Tuple[Console, StringIO, StringIO]:
    out = StringIO()
    err = StringIO()
    return Console(level=level, dry_run=dry_run, stream=out, error_stream=err, color=False), out, err


def write_project(path: Path, name: str | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(PROJECT_TEMPLATE.format(name=name or path.stem), encoding="utf-8")
    return path


def init_repository(path: Path, files: Mapping[str, str] | None = None) -> pygit2.Repository:
    """Create a git repository at ``path`` with one commit holding ``files``."""

    path.mkdir(parents=True, exist_ok=True)
    repo = pygit2.init_repository(str(path))
    for name, content in (files or {"README": "source\n"}).items():
        target = path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    repo.index.add_all()
    repo.index.write()
    tree = repo.index.write_tree()
    signature = pygit2.Signature("winbuild", "winbuild@example.com")
    repo.create_commit("HEAD", signature, signature, "initial", tree, [])
    return repo


def create_workspace(root: Path, layout: SourceLayout | None = None) -> SourceLayout:
    """Lay out every source tree, project file and patch the default layout expects."""

    layout = layout or SourceLayout.from_mapping(root, {})
    for project in (*layout.codecs, layout.leptonica, layout.tesseract):
        write_project(layout.project_path(project))

    init_repository(layout.tesseract_dir, {"api/baseapi.h": "// api\n"})
    init_repository(layout.opencv_dir, {"CMakeLists.txt": "project(opencv)\n"})
    layout.patches_dir.mkdir(parents=True, exist_ok=True)
    (layout.patches_dir / layout.tesseract_patch).write_text("--- a/api/baseapi.h\n", encoding="utf-8")
    (layout.patches_dir / layout.opencv_gpu_patch).write_text("--- a/CMakeLists.txt\n", encoding="utf-8")

    source = layout.openalpr_source
    source.mkdir(parents=True, exist_ok=True)
    (source / "CMakeLists.txt").write_text("project(openalpr)\n", encoding="utf-8")
    binding = layout.openalpr_dir / layout.binding_source
    write_project(binding / layout.binding_project, "AlprNet")
    (binding / layout.binding_assembly_info).write_text(ASSEMBLY_INFO, encoding="utf-8")

    runtime = layout.openalpr_dir / "runtime_data"
    (runtime / "region").mkdir(parents=True, exist_ok=True)
    (runtime / "region" / "us.xml").write_text("<cascade/>\n", encoding="utf-8")
    config = layout.openalpr_dir / "config"
    config.mkdir(parents=True, exist_ok=True)
    (config / "openalpr.conf.in").write_text(OPENALPR_CONF, encoding="utf-8")

    layout.nuspec.parent.mkdir(parents=True, exist_ok=True)
    layout.nuspec.write_text("<package/>\n", encoding="utf-8")
    return layout


def make_profile(toolset: Toolset = Toolset.V120, architecture: Architecture = Architecture.X64) -> ToolchainProfile:
    generator = "Visual Studio 12 2013"
    if architecture.is_64bit:
        generator = f"{generator} Win64"
    root = Path("C:/Program Files (x86)/Microsoft Visual Studio 12.0/Common7/Tools")
    return ToolchainProfile(
        toolset=toolset,
        tools_version="12.0",
        product_version="12.0",
        installation_root=root,
        setup_script=root.parent.parent / "VC" / "vcvarsall.bat",
        generator=generator,
    )


def make_context(root: Path, request: BuildRequest | None = None, *, layout: SourceLayout | None = None) -> BuildContext:
    request = request or BuildRequest()
    return BuildContext(
        request=request,
        profile=make_profile(request.toolset, request.architecture),
        paths=PathSet.from_request(root, request),
        layout=layout or SourceLayout.from_mapping(root, {}),
        environment={"PATH": "C:\\Windows\\System32", "INCLUDE": "C:\\VC\\include"},
    )


def with_request(context: BuildContext, **changes) -> BuildContext:
    request = replace(context.request, **changes)
    return replace(context, request=request, paths=PathSet.from_request(context.paths.root, request))


def default_outputs(layout: SourceLayout, configuration: str = "Release") -> Dict[Tuple[str, str], List[str]]:
    """Files each msbuild invocation is expected to produce, keyed by (project, configuration)."""

    outputs: Dict[Tuple[str, str], List[str]] = {}
    debug = configuration == "Debug"
    static_suffix = "-debug" if debug else ""
    shared_suffix = "d" if debug else ""
    for project in (*layout.codecs, layout.leptonica, layout.tesseract):
        key = (Path(project.project).name, f"LIB_{configuration}")
        outputs.setdefault(key, []).append(f"{project.library}{static_suffix}.lib")
    outputs[(Path(layout.leptonica.project).name, f"DLL_{configuration}")] = [
        f"{layout.leptonica_dll.library}{shared_suffix}.dll",
        f"{layout.leptonica_dll.library}{shared_suffix}.lib",
    ]
    outputs[(layout.binding_project, configuration)] = [layout.binding_output]
    return outputs


def default_cmake_outputs(configuration: str = "Release") -> Dict[str, List[str]]:
    return {
        "opencv": [f"bin/{configuration}/opencv_core300.dll", f"lib/{configuration}/opencv_core300.lib"],
        "openalpr": [
            f"{configuration}/alpr.exe",
            f"openalpr/{configuration}/openalpr.dll",
            f"openalpr/{configuration}/openalpr.lib",
            "CMakeFiles/3.4.0/CompilerIdC/CompilerIdC.exe",
        ],
    }


class FakeToolRunner(CommandRunner):
    """Records commands and creates the files the real tools would produce."""

    def __init__(
        self,
        *,
        msbuild_outputs: Mapping[Tuple[str, str], Sequence[str]] | None = None,
        cmake_outputs: Mapping[str, Sequence[str]] | None = None,
        fail_on: str | None = None,
        exit_code: int = 1,
        responses: Mapping[str, str] | None = None,
    ) -> None:
        self.responses = dict(responses or {})
        self.history: List[dict] = []
        self.msbuild_outputs = dict(msbuild_outputs or {})
        self.cmake_outputs = dict(cmake_outputs or {})
        self.fail_on = fail_on
        self.exit_code = exit_code

    @property
    def commands(self) -> List[List[str]]:
        return [record["command"] for record in self.history]

    def executables(self) -> List[str]:
        return [Path(command[0]).name for command in self.commands]

    def run(self, command, *, cwd=None, env=None, check=True, note=None, stream=False):  # type: ignore[override]
        cmd_list = [str(part) for part in command]
        self.history.append({"command": cmd_list, "cwd": cwd, "env": env, "note": note})
        tool = Path(cmd_list[0]).name

        if self.fail_on is not None and (tool == self.fail_on or note == self.fail_on):
            result = CommandResult(command=cmd_list, returncode=self.exit_code, stdout="", stderr="", streamed=stream)
            if check:
                raise CommandError(result)
            return result

        if tool == "msbuild":
            self._msbuild(cmd_list)
        elif tool == "cmake" and cmd_list[1] == "--build":
            build_dir = Path(cmd_list[2])
            for relative in self.cmake_outputs.get(build_dir.name, ()):
                _touch(build_dir / relative)
        stdout = self.responses.get(tool, "")
        return CommandResult(command=cmd_list, returncode=0, stdout=stdout, stderr="", streamed=stream)

    def _msbuild(self, cmd_list: List[str]) -> None:
        project = Path(cmd_list[1]).name
        properties = dict(
            arg[len("/p:"):].split("=", 1) for arg in cmd_list if arg.startswith("/p:")
        )
        out_dir = Path(properties["OutDir"].rstrip("\\"))
        for name in self.msbuild_outputs.get((project, properties["Configuration"]), ()):
            _touch(out_dir / name)


def _touch(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"binary")
