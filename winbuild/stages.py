"""The four build stages and the tool invocations they are made of."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence
import shutil

from core.command_runner import CommandRunner

from .config import DependencyProject
from .console import Console
from .context import BuildContext
from .packaging import Packager
from .patches import PatchApplicator
from .pipeline import Stage, StageStep
from .project_file import ProjectFileEditor
from .staging import ArtifactStager, StagingRule
from .versioning import parse_version, stamp_assembly_info

TESSERACT_INCLUDE_DIRS: Dict[str, str] = {
    "BASEAPI": "api",
    "CCMAIN": "ccmain",
    "CCSTRUCT": "ccstruct",
    "CCUTIL": "ccutil",
}

STAGED_BINARIES: tuple[str, ...] = ("*.exe", "*.dll", "*.lib")


def msbuild_command(
    context: BuildContext,
    project: Path,
    configuration: str,
    out_dir: Path,
) -> List[str]:
    profile = context.profile
    return [
        context.tool("msbuild"),
        str(project),
        "/t:Build",
        "/m",
        "/nologo",
        "/v:minimal",
        f"/tv:{profile.tools_version}",
        f"/p:Configuration={configuration}",
        f"/p:Platform={context.request.architecture.value}",
        f"/p:PlatformToolset={profile.toolset.value}",
        f"/p:VisualStudioVersion={profile.product_version}",
        # MSBuild only accepts OutDir with a trailing separator.
        f"/p:OutDir={out_dir}\\",
    ]


def _cmake_definition_type(value: Any) -> str | None:
    if isinstance(value, bool):
        return "BOOL"
    if isinstance(value, Path):
        return "PATH"
    if isinstance(value, (int, float, str)):
        return "STRING"
    return None


def _format_cmake_value(value: Any) -> str:
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    return str(value)


def cmake_definition_flag(name: str, value: Any) -> str:
    type_hint = _cmake_definition_type(value)
    formatted_value = _format_cmake_value(value)
    if type_hint:
        return f"{name}:{type_hint}={formatted_value}"
    return f"{name}={formatted_value}"


def cmake_configure_command(
    context: BuildContext,
    source_dir: Path,
    build_dir: Path,
    definitions: Mapping[str, Any],
) -> List[str]:
    args = [context.tool("cmake"), "-G", context.profile.generator]
    for key, value in definitions.items():
        args.extend(["-D", cmake_definition_flag(key, value)])
    args.extend(["-B", str(build_dir), "-S", str(source_dir)])
    return args


def cmake_build_command(context: BuildContext, build_dir: Path) -> List[str]:
    return [
        context.tool("cmake"),
        "--build",
        str(build_dir),
        "--config",
        context.request.configuration.value,
        "--",
        "/m",
    ]


def opencv_definitions(context: BuildContext) -> Dict[str, Any]:
    gpu = context.request.gpu
    definitions: Dict[str, Any] = {
        "BUILD_TESTS": False,
        "BUILD_PERF_TESTS": False,
        "BUILD_EXAMPLES": False,
        "BUILD_DOCS": False,
        "WITH_CUDA": gpu.enabled,
    }
    if gpu.enabled:
        definitions["CUDA_GENERATION"] = gpu.value
    return definitions


def tesseract_library(context: BuildContext) -> Path:
    return context.paths.deps_dir / context.layout.tesseract.static_library(context.request.configuration)


def leptonica_library(context: BuildContext) -> Path:
    return context.paths.deps_dir / context.layout.leptonica_dll.import_library(context.request.configuration)


def openalpr_definitions(context: BuildContext) -> Dict[str, Any]:
    version = parse_version(context.request.version)
    tesseract_dir = context.layout.tesseract_dir
    definitions: Dict[str, Any] = {
        f"Tesseract_INCLUDE_{key}_DIR": tesseract_dir / subdir for key, subdir in TESSERACT_INCLUDE_DIRS.items()
    }
    definitions.update(
        {
            "Tesseract_LIB": tesseract_library(context),
            "Leptonica_LIB": leptonica_library(context),
            "OpenCV_DIR": context.paths.opencv_dir,
            "OPENALPR_MAJOR_VERSION": version.major,
            "OPENALPR_MINOR_VERSION": version.minor,
            "OPENALPR_PATCH_VERSION": version.patch,
            "WITH_GPU_DETECTOR": context.request.gpu.enabled,
            "WITH_TESTS": False,
            "WITH_BINDING_JAVA": False,
            "WITH_BINDING_PYTHON": False,
            "WITH_UTILITIES": True,
        }
    )
    return definitions


def staging_rules(context: BuildContext) -> List[StagingRule]:
    paths = context.paths
    configuration = context.request.configuration
    return [
        StagingRule(paths.openalpr_dir, STAGED_BINARIES, paths.dist_root, recursive=True),
        StagingRule(paths.opencv_dir / "bin" / configuration.value, ("*.dll",), paths.dist_root),
        StagingRule(
            paths.deps_dir,
            (context.layout.leptonica_dll.shared_library(configuration),),
            paths.dist_root,
        ),
    ]


def binding_include_directories(context: BuildContext) -> List[Path]:
    layout = context.layout
    directories = [
        layout.openalpr_source,
        layout.openalpr_source / "openalpr",
        layout.opencv_dir / "include",
        layout.opencv_dir / "include" / "opencv",
        context.paths.opencv_dir,
    ]
    directories.extend(layout.tesseract_dir / subdir for subdir in TESSERACT_INCLUDE_DIRS.values())
    return directories


def binding_link_libraries(context: BuildContext) -> List[str]:
    """Every library from the earlier stages followed by the system libraries."""

    paths = context.paths
    layout = context.layout
    configuration = context.request.configuration

    dependencies: List[DependencyProject] = [*layout.codecs, layout.tesseract]
    libraries = [str(paths.deps_dir / project.static_library(configuration)) for project in dependencies]
    libraries.append(str(leptonica_library(context)))
    libraries.extend(str(path) for path in sorted((paths.opencv_dir / "lib" / configuration.value).glob("*.lib")))
    # Stage 3 staged the openalpr import and static libraries into the distribution root.
    libraries.extend(str(path) for path in sorted(paths.dist_root.glob("*.lib")))
    libraries.extend(layout.system_libraries)
    return libraries


def _join_list(items: Sequence[Any], inherit: str) -> str:
    return ";".join([*(str(item) for item in items), f"%({inherit})"])


class BuildStages:
    """Factory for the four ordered stages of one build."""

    def __init__(
        self,
        runner: CommandRunner,
        console: Console,
        *,
        editor: ProjectFileEditor | None = None,
        stager: ArtifactStager | None = None,
        packager: Packager | None = None,
        archive: bool = False,
    ) -> None:
        self._runner = runner
        self._console = console
        self._editor = editor or ProjectFileEditor(console)
        self._stager = stager or ArtifactStager(console)
        self._packager = packager or Packager(runner, console)
        self._archive = archive

    # --- helpers ---

    def _run(self, context: BuildContext, command: Sequence[str], *, cwd: Path | None = None, note: str) -> None:
        self._console.debug(f"Running: {self._runner.format_command(command)}")
        self._runner.run(command, cwd=cwd, env=context.env(), note=note, stream=True)

    def _patcher(self, context: BuildContext) -> PatchApplicator:
        return PatchApplicator(
            self._runner,
            context.layout.patches_dir,
            console=self._console,
            env=context.env(),
        )

    def _msbuild(self, context: BuildContext, project: Path, configuration: str, out_dir: Path) -> None:
        out_dir.mkdir(parents=True, exist_ok=True)
        command = msbuild_command(context, project, configuration, out_dir)
        self._run(context, command, cwd=project.parent, note=f"msbuild {project.name}")

    def _cmake(self, context: BuildContext, source_dir: Path, build_dir: Path, definitions: Mapping[str, Any]) -> None:
        build_dir.mkdir(parents=True, exist_ok=True)
        configure = cmake_configure_command(context, source_dir, build_dir, definitions)
        self._run(context, configure, cwd=build_dir, note=f"cmake configure {source_dir.name}")
        self._run(context, cmake_build_command(context, build_dir), cwd=build_dir, note=f"cmake build {source_dir.name}")

    def stages(self, context: BuildContext) -> List[Stage]:
        return [
            self.dependencies_stage(context),
            self.opencv_stage(context),
            self.openalpr_stage(context),
            self.binding_stage(context),
        ]

    # --- stage 1 ---

    @staticmethod
    def dependencies_built(context: BuildContext) -> bool:
        pattern = f"{context.layout.tesseract.library}*.lib"
        deps_dir = context.paths.deps_dir
        return deps_dir.is_dir() and any(deps_dir.glob(pattern))

    def dependencies_stage(self, context: BuildContext) -> Stage:
        layout = context.layout
        configuration = context.request.configuration.value
        static_configuration = f"LIB_{configuration}"
        leptonica_project = layout.project_path(layout.leptonica)
        tesseract_project = layout.project_path(layout.tesseract)

        def strip_post_build_events(project: Path) -> StageStep:
            return StageStep(
                name=f"strip-post-build-{project.stem}",
                description=f"Removing post-build events from {project.name}",
                action=lambda ctx: self._editor.delete(project, ".//msb:PostBuildEvent"),
                requires=(project,),
            )

        def build_static(project: DependencyProject) -> StageStep:
            path = layout.project_path(project)
            return StageStep(
                name=f"build-{project.name}",
                description=f"Building {project.name} ({static_configuration})",
                action=lambda ctx: self._msbuild(ctx, path, static_configuration, ctx.paths.deps_dir),
                requires=(path,),
            )

        def link_leptonica(ctx: BuildContext) -> None:
            self._editor.set_content(
                leptonica_project,
                ".//msb:Link/msb:AdditionalLibraryDirectories",
                _join_list([ctx.paths.deps_dir], "AdditionalLibraryDirectories"),
            )

        def build_leptonica_dll(ctx: BuildContext) -> None:
            self._msbuild(ctx, leptonica_project, f"DLL_{configuration}", ctx.paths.deps_dir)

        def patch_tesseract(ctx: BuildContext) -> None:
            self._patcher(ctx).apply(layout.tesseract_patch, layout.tesseract_dir)

        steps: List[StageStep] = [strip_post_build_events(leptonica_project)]
        steps.extend(build_static(codec) for codec in layout.codecs)
        steps.append(build_static(layout.leptonica))
        steps.extend(
            [
                StageStep(
                    "link-leptonica",
                    "Pointing leptonica at the dependency libraries",
                    link_leptonica,
                    (leptonica_project,),
                ),
                StageStep(
                    "build-leptonica-dll",
                    f"Building leptonica (DLL_{configuration})",
                    build_leptonica_dll,
                    (leptonica_project,),
                ),
                StageStep(
                    "patch-tesseract",
                    f"Applying {layout.tesseract_patch}",
                    patch_tesseract,
                    (layout.tesseract_dir,),
                ),
                # The patch resets the tesseract tree, so its project is edited afterwards.
                strip_post_build_events(tesseract_project),
                build_static(layout.tesseract),
            ]
        )
        return Stage(
            name="dependencies",
            description="Image codecs, leptonica and tesseract",
            guard=self.dependencies_built,
            steps=tuple(steps),
        )

    # --- stage 2 ---

    def opencv_stage(self, context: BuildContext) -> Stage:
        layout = context.layout

        def patch_opencv(ctx: BuildContext) -> None:
            self._patcher(ctx).apply(layout.opencv_gpu_patch, layout.opencv_dir)

        def build_opencv(ctx: BuildContext) -> None:
            self._cmake(ctx, layout.opencv_dir, ctx.paths.opencv_dir, opencv_definitions(ctx))

        steps: List[StageStep] = []
        if context.request.gpu.enabled:
            steps.append(
                StageStep("patch-opencv", f"Applying {layout.opencv_gpu_patch}", patch_opencv, (layout.opencv_dir,))
            )
        steps.append(StageStep("build-opencv", "Configuring and building OpenCV", build_opencv, (layout.opencv_dir,)))
        return Stage(
            name="opencv",
            description="OpenCV",
            guard=lambda ctx: ctx.paths.opencv_dir.exists(),
            steps=tuple(steps),
        )

    # --- stage 3 ---

    def openalpr_stage(self, context: BuildContext) -> Stage:
        layout = context.layout
        paths = context.paths

        def build_openalpr(ctx: BuildContext) -> None:
            self._cmake(ctx, layout.openalpr_source, ctx.paths.openalpr_dir, openalpr_definitions(ctx))

        def stage_artifacts(ctx: BuildContext) -> None:
            dist_root = ctx.paths.dist_root
            dist_root.mkdir(parents=True, exist_ok=True)
            self._stager.stage(staging_rules(ctx))
            self._stager.copy_tree(layout.openalpr_dir / "runtime_data", dist_root / "runtime_data")
            self._stager.render_config(
                layout.openalpr_dir / "config" / "openalpr.conf.in",
                dist_root / "openalpr.conf",
            )

        return Stage(
            name="openalpr",
            description="OpenALPR",
            guard=lambda ctx: ctx.paths.openalpr_dir.exists(),
            steps=(
                StageStep(
                    "build-openalpr",
                    "Configuring and building OpenALPR",
                    build_openalpr,
                    (layout.openalpr_source, tesseract_library(context), leptonica_library(context), paths.opencv_dir),
                ),
                StageStep(
                    "stage-artifacts",
                    f"Staging binaries into {paths.dist_root}",
                    stage_artifacts,
                    (
                        paths.openalpr_dir,
                        layout.openalpr_dir / "runtime_data",
                        layout.openalpr_dir / "config" / "openalpr.conf.in",
                    ),
                ),
            ),
        )

    # --- stage 4 ---

    def binding_stage(self, context: BuildContext) -> Stage:
        layout = context.layout
        paths = context.paths
        source = layout.openalpr_dir / layout.binding_source
        project = paths.binding_dir / layout.binding_project
        assembly_info = paths.binding_dir / layout.binding_assembly_info
        out_dir = paths.binding_dir / "bin"
        output = out_dir / layout.binding_output

        def copy_sources(ctx: BuildContext) -> None:
            shutil.copytree(source, ctx.paths.binding_dir, dirs_exist_ok=True)

        def edit_project(ctx: BuildContext) -> None:
            self._editor.set_content(
                project,
                ".//msb:ClCompile/msb:AdditionalIncludeDirectories",
                _join_list(binding_include_directories(ctx), "AdditionalIncludeDirectories"),
            )
            self._editor.set_content(
                project,
                ".//msb:Link/msb:AdditionalDependencies",
                _join_list(binding_link_libraries(ctx), "AdditionalDependencies"),
            )
            self._editor.delete(project, ".//msb:WindowsTargetPlatformVersion")

        def stamp_version(ctx: BuildContext) -> None:
            stamp_assembly_info(assembly_info, parse_version(ctx.request.version))

        def build_binding(ctx: BuildContext) -> None:
            self._msbuild(ctx, project, ctx.request.configuration.value, out_dir)

        def copy_binary(ctx: BuildContext) -> None:
            ctx.paths.dist_root.mkdir(parents=True, exist_ok=True)
            shutil.copy2(output, ctx.paths.dist_root / output.name)

        steps: List[StageStep] = [
            StageStep("copy-sources", f"Copying {layout.binding_source}", copy_sources, (source,)),
            StageStep("edit-project", f"Rewriting {layout.binding_project}", edit_project, (project,)),
            StageStep("stamp-version", f"Stamping version {context.request.version}", stamp_version, (assembly_info,)),
            StageStep("build-binding", f"Building {layout.binding_project}", build_binding, (project,)),
            StageStep("copy-binary", f"Copying {layout.binding_output}", copy_binary, (output,)),
            StageStep("package", "Creating the NuGet package", self._packager.pack, (layout.nuspec, paths.dist_root)),
        ]
        if self._archive:
            steps.append(
                StageStep(
                    "archive",
                    "Archiving the distribution directory",
                    lambda ctx: self._packager.archive(ctx),
                    (paths.dist_root,),
                )
            )
        return Stage(
            name="binding",
            description="AlprNet binding and package",
            guard=lambda ctx: ctx.paths.binding_dir.exists(),
            steps=tuple(steps),
        )


__all__ = [
    "BuildStages",
    "cmake_build_command",
    "cmake_configure_command",
    "cmake_definition_flag",
    "msbuild_command",
    "openalpr_definitions",
    "opencv_definitions",
    "staging_rules",
]
