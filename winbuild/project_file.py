"""Structured edits of MSBuild project files."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List
import xml.etree.ElementTree as ET

from .console import Console

MSBUILD_NS = "http://schemas.microsoft.com/developer/msbuild/2003"
NAMESPACES: Dict[str, str] = {"msb": MSBUILD_NS}

# Keep the default namespace unprefixed when files are written back.
ET.register_namespace("", MSBUILD_NS)


@dataclass(frozen=True, slots=True)
class ProjectFileEdit:
    """One query against one project file; ``replacement=None`` deletes the matches."""

    path: Path
    query: str
    replacement: str | None = None


def _qualify(step: str) -> str:
    prefix, sep, local = step.partition(":")
    if not sep:
        return step
    try:
        return f"{{{NAMESPACES[prefix]}}}{local}"
    except KeyError:
        raise ValueError(f"Unknown namespace prefix '{prefix}' in query step '{step}'") from None


def _select(root: ET.Element, query: str) -> List[ET.Element]:
    # Comments are kept in the tree but never selected.
    return [node for node in _find(root, query) if isinstance(node.tag, str)]


def _find(root: ET.Element, query: str) -> List[ET.Element]:
    if not query:
        raise ValueError("Query must not be empty")
    if query.startswith("//"):
        return root.findall(f".{query}", NAMESPACES)
    if query.startswith("/"):
        head, _, rest = query[1:].partition("/")
        if head != "*" and _qualify(head) != root.tag:
            return []
        if not rest:
            return [root]
        return root.findall(f"./{rest}", NAMESPACES)
    return root.findall(query, NAMESPACES)


class ProjectFileEditor:
    """Query, delete and replace nodes of project files.

    Each call parses the file afresh and only writes it back when the query
    matched at least one node.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(level="error")

    @staticmethod
    def _load(path: Path) -> ET.ElementTree:
        if not path.is_file():
            raise FileNotFoundError(f"Project file '{path}' does not exist")
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        return ET.parse(path, parser=parser)

    @staticmethod
    def _save(tree: ET.ElementTree, path: Path) -> None:
        tree.write(path, encoding="utf-8", xml_declaration=True)

    def query(self, path: Path, query: str) -> List[ET.Element]:
        return _select(self._load(path).getroot(), query)

    def delete(self, path: Path, query: str) -> int:
        tree = self._load(path)
        root = tree.getroot()
        matches = _select(root, query)
        if not matches:
            self._console.debug(f"{path.name}: nothing matches {query}")
            return 0
        if any(node is root for node in matches):
            raise ValueError(f"Refusing to delete the document root of '{path}'")

        parents = {child: parent for parent in root.iter() for child in parent}
        for node in matches:
            parents[node].remove(node)
        self._save(tree, path)
        self._console.debug(f"{path.name}: deleted {len(matches)} node(s) matching {query}")
        return len(matches)

    def set_content(self, path: Path, query: str, content: str) -> int:
        tree = self._load(path)
        matches = _select(tree.getroot(), query)
        if not matches:
            self._console.debug(f"{path.name}: nothing matches {query}")
            return 0

        for node in matches:
            for child in list(node):
                node.remove(child)
            node.text = content
        self._save(tree, path)
        self._console.debug(f"{path.name}: replaced {len(matches)} node(s) matching {query}")
        return len(matches)

    def apply(self, edit: ProjectFileEdit) -> int:
        if edit.replacement is None:
            return self.delete(edit.path, edit.query)
        return self.set_content(edit.path, edit.query, edit.replacement)


__all__ = [
    "MSBUILD_NS",
    "NAMESPACES",
    "ProjectFileEdit",
    "ProjectFileEditor",
]
