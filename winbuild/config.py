"""Source layout configuration: where third-party trees, patches and projects live."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple
import os

from core.config_loader import (
    find_config_file,
    load_config_file,
    merge_mappings,
    normalize_string_list,
    reject_unknown_keys,
)

from .request import Configuration

CONFIG_STEM = "winbuild"
CONFIG_ENV_VAR = "WINBUILD_CONFIG"


@dataclass(frozen=True, slots=True)
class DependencyProject:
    """A project-file driven dependency and the stem of the library it produces."""

    name: str
    project: str
    library: str

    def static_library(self, configuration: Configuration) -> str:
        suffix = "-debug" if configuration.is_debug else ""
        return f"{self.library}{suffix}.lib"

    def shared_library(self, configuration: Configuration) -> str:
        suffix = "d" if configuration.is_debug else ""
        return f"{self.library}{suffix}.dll"

    def import_library(self, configuration: Configuration) -> str:
        suffix = "d" if configuration.is_debug else ""
        return f"{self.library}{suffix}.lib"


DEFAULT_LAYOUT: Dict[str, Any] = {
    "sources": {
        "dependencies": "tesseract-ocr",
        "tesseract": "tesseract-ocr/tesseract",
        "opencv": "opencv",
        "openalpr": "openalpr",
        "patches": "patches",
        "nuspec": "nuget/openalpr.nuspec",
    },
    "patches": {
        "tesseract": "tesseract.patch",
        "opencv_gpu": "opencv-cuda.patch",
    },
    "codecs": {
        "zlib": {"project": "zlib/zlib.vcxproj", "library": "zlib125-static-mtdll"},
        "giflib": {"project": "giflib/giflib.vcxproj", "library": "giflib416-static-mtdll"},
        "libjpeg": {"project": "libjpeg/libjpeg.vcxproj", "library": "libjpeg8c-static-mtdll"},
        "libpng": {"project": "libpng/libpng.vcxproj", "library": "libpng143-static-mtdll"},
        "libtiff": {"project": "libtiff/libtiff.vcxproj", "library": "libtiff394-static-mtdll"},
    },
    "leptonica": {
        "project": "liblept/leptonica.vcxproj",
        "library": "liblept168-static-mtdll",
        "shared_library": "liblept168",
    },
    "tesseract": {
        "project": "tesseract/libtesseract.vcxproj",
        "library": "libtesseract302-static",
    },
    "binding": {
        "source": "src/bindings/csharp/AlprNet",
        "project": "AlprNet.vcxproj",
        "assembly_info": "AssemblyInfo.cpp",
        "output": "AlprNet.dll",
        "system_libraries": [
            "kernel32.lib",
            "user32.lib",
            "gdi32.lib",
            "winspool.lib",
            "comdlg32.lib",
            "advapi32.lib",
            "shell32.lib",
            "ole32.lib",
            "oleaut32.lib",
            "uuid.lib",
            "ws2_32.lib",
            "vfw32.lib",
            "comctl32.lib",
        ],
    },
}

_ROOT_KEYS = set(DEFAULT_LAYOUT)


def _library_entry(name: str, data: Any) -> DependencyProject:
    if not isinstance(data, Mapping):
        raise TypeError(f"Library '{name}' definition must be a mapping")
    reject_unknown_keys(data, {"project", "library", "shared_library"}, section=f"Library '{name}'")
    project = data.get("project")
    library = data.get("library")
    if not isinstance(project, str) or not project.strip():
        raise ValueError(f"Library '{name}' must define a project path")
    if not isinstance(library, str) or not library.strip():
        raise ValueError(f"Library '{name}' must define a library name")
    return DependencyProject(name=name, project=project.strip(), library=library.strip())


def _text(section: Mapping[str, Any], key: str, *, section_name: str) -> str:
    value = section.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{section_name}.{key} must be a non-empty string")
    return value.strip()


@dataclass(frozen=True, slots=True)
class SourceLayout:
    root: Path
    dependencies_dir: Path
    tesseract_dir: Path
    opencv_dir: Path
    openalpr_dir: Path
    patches_dir: Path
    nuspec: Path
    tesseract_patch: str
    opencv_gpu_patch: str
    codecs: Tuple[DependencyProject, ...]
    leptonica: DependencyProject
    leptonica_dll: DependencyProject
    tesseract: DependencyProject
    binding_source: str
    binding_project: str
    binding_assembly_info: str
    binding_output: str
    system_libraries: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_mapping(cls, root: Path, data: Mapping[str, Any]) -> "SourceLayout":
        reject_unknown_keys(data, _ROOT_KEYS, section="Layout")
        merged = merge_mappings(DEFAULT_LAYOUT, data)
        if "codecs" in data:
            # A configured codec list replaces the default one instead of extending it.
            merged["codecs"] = data["codecs"]

        def section(name: str) -> Mapping[str, Any]:
            value = merged.get(name)
            if not isinstance(value, Mapping):
                raise TypeError(f"Layout section '{name}' must be a mapping")
            return value

        sources = section("sources")
        reject_unknown_keys(sources, DEFAULT_LAYOUT["sources"], section="[sources]")

        def source_path(key: str) -> Path:
            path = Path(_text(sources, key, section_name="sources")).expanduser()
            return path if path.is_absolute() else root / path

        patches = section("patches")
        reject_unknown_keys(patches, DEFAULT_LAYOUT["patches"], section="[patches]")

        # Declaration order is build order.
        codecs = tuple(_library_entry(name, entry) for name, entry in section("codecs").items())
        if not codecs:
            raise ValueError("Layout must declare at least one codec library")

        leptonica_section = section("leptonica")
        leptonica = _library_entry("leptonica", leptonica_section)
        leptonica_dll = DependencyProject(
            name="leptonica",
            project=leptonica.project,
            library=_text(leptonica_section, "shared_library", section_name="leptonica"),
        )

        binding = section("binding")
        reject_unknown_keys(binding, DEFAULT_LAYOUT["binding"], section="[binding]")

        return cls(
            root=root,
            dependencies_dir=source_path("dependencies"),
            tesseract_dir=source_path("tesseract"),
            opencv_dir=source_path("opencv"),
            openalpr_dir=source_path("openalpr"),
            patches_dir=source_path("patches"),
            nuspec=source_path("nuspec"),
            tesseract_patch=_text(patches, "tesseract", section_name="patches"),
            opencv_gpu_patch=_text(patches, "opencv_gpu", section_name="patches"),
            codecs=codecs,
            leptonica=leptonica,
            leptonica_dll=leptonica_dll,
            tesseract=_library_entry("tesseract", section("tesseract")),
            binding_source=_text(binding, "source", section_name="binding"),
            binding_project=_text(binding, "project", section_name="binding"),
            binding_assembly_info=_text(binding, "assembly_info", section_name="binding"),
            binding_output=_text(binding, "output", section_name="binding"),
            system_libraries=tuple(
                normalize_string_list(binding.get("system_libraries"), field_name="binding.system_libraries")
            ),
        )

    def project_path(self, project: DependencyProject) -> Path:
        return self.dependencies_dir / project.project

    @property
    def openalpr_source(self) -> Path:
        return self.openalpr_dir / "src"


def load_layout(
    root: Path,
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> SourceLayout:
    """Load the source layout for ``root``.

    Lookup order: explicit ``config_path``, ``$WINBUILD_CONFIG``, then a
    ``winbuild.<toml|json|yaml|yml>`` file in ``root``. Without any file the
    defaults apply.
    """

    env = os.environ if environ is None else environ
    candidate = config_path
    if candidate is None and env.get(CONFIG_ENV_VAR):
        candidate = Path(env[CONFIG_ENV_VAR])
    if candidate is not None:
        candidate = candidate.expanduser()
        if not candidate.is_absolute():
            candidate = root / candidate
        if not candidate.is_file():
            raise ValueError(f"Configuration file '{candidate}' does not exist")
    else:
        candidate = find_config_file(root, CONFIG_STEM)

    data: Mapping[str, Any] = load_config_file(candidate) if candidate is not None else {}
    return SourceLayout.from_mapping(root, data)


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_LAYOUT",
    "DependencyProject",
    "SourceLayout",
    "load_layout",
]
