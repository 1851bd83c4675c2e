"""Copying build outputs into the distribution directory."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Tuple
import re
import shutil

from .console import Console

_RUNTIME_DIR_RE = re.compile(r"^(?P<indent>[ \t]*)runtime_dir[ \t]*=.*$", re.MULTILINE)


@dataclass(frozen=True, slots=True)
class StagingRule:
    """Copy files under ``source`` matching any of ``patterns`` flat into ``destination``."""

    source: Path
    patterns: Tuple[str, ...]
    destination: Path
    recursive: bool = False
    exclude_dirs: Tuple[str, ...] = field(default=("CMakeFiles",))


class ArtifactStager:
    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(level="error")

    @staticmethod
    def collect(rule: StagingRule) -> List[Path]:
        if not rule.source.is_dir():
            return []
        found: dict[Path, None] = {}
        for pattern in rule.patterns:
            matches = rule.source.rglob(pattern) if rule.recursive else rule.source.glob(pattern)
            for match in sorted(matches):
                if not match.is_file():
                    continue
                relative = match.relative_to(rule.source)
                if any(part in rule.exclude_dirs for part in relative.parts[:-1]):
                    continue
                found.setdefault(match, None)
        return list(found)

    def stage(self, rules: Iterable[StagingRule]) -> List[Path]:
        copied: List[Path] = []
        for rule in rules:
            matches = self.collect(rule)
            if not matches:
                patterns = ", ".join(rule.patterns)
                self._console.warning(f"No files matching {patterns} in {rule.source}")
                continue
            rule.destination.mkdir(parents=True, exist_ok=True)
            for source in matches:
                target = rule.destination / source.name
                shutil.copy2(source, target)
                self._console.debug(f"Staged {source} -> {target}")
                copied.append(target)
        return copied

    def copy_tree(self, source: Path, destination: Path) -> Path:
        if not source.is_dir():
            raise FileNotFoundError(f"Directory '{source}' does not exist")
        shutil.copytree(source, destination, dirs_exist_ok=True)
        self._console.debug(f"Copied {source} -> {destination}")
        return destination

    def render_config(self, template: Path, destination: Path, runtime_dir: str = "runtime_data") -> Path:
        """Write ``template`` to ``destination`` with its ``runtime_dir`` pointing at ``runtime_dir``."""

        content = template.read_text(encoding="utf-8")
        rendered, count = _RUNTIME_DIR_RE.subn(
            lambda match: f"{match.group('indent')}runtime_dir = {runtime_dir}", content
        )
        if count == 0:
            self._console.warning(f"{template.name} has no runtime_dir entry")
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(rendered, encoding="utf-8")
        return destination


__all__ = ["ArtifactStager", "StagingRule"]
