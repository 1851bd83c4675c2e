from __future__ import annotations

from pathlib import Path
import tempfile
import unittest
import xml.etree.ElementTree as ET

from support import quiet_console, write_project
from winbuild.project_file import MSBUILD_NS, ProjectFileEdit, ProjectFileEditor


class ProjectFileEditorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.project = write_project(Path(self.temp_dir.name) / "liblept" / "leptonica.vcxproj")
        console, _, _ = quiet_console()
        self.editor = ProjectFileEditor(console)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_delete_removes_every_match(self) -> None:
        removed = self.editor.delete(self.project, ".//msb:PostBuildEvent")

        self.assertEqual(removed, 2)
        self.assertEqual(self.editor.query(self.project, ".//msb:PostBuildEvent"), [])
        self.assertEqual(len(self.editor.query(self.project, ".//msb:ItemDefinitionGroup")), 2)

    def test_no_match_leaves_file_untouched(self) -> None:
        before = self.project.read_bytes()
        self.assertEqual(self.editor.delete(self.project, ".//msb:PreBuildEvent"), 0)
        self.assertEqual(self.editor.set_content(self.project, ".//msb:PreBuildEvent", "x"), 0)
        self.assertEqual(self.project.read_bytes(), before)

    def test_set_content_replaces_text(self) -> None:
        count = self.editor.set_content(
            self.project,
            ".//msb:Link/msb:AdditionalDependencies",
            "zlib.lib;%(AdditionalDependencies)",
        )

        self.assertEqual(count, 1)
        [node] = self.editor.query(self.project, ".//msb:Link/msb:AdditionalDependencies")
        self.assertEqual(node.text, "zlib.lib;%(AdditionalDependencies)")

    def test_set_content_drops_children(self) -> None:
        self.editor.set_content(self.project, ".//msb:PostBuildEvent", "")
        for node in self.editor.query(self.project, ".//msb:PostBuildEvent"):
            self.assertEqual(list(node), [])

    def test_written_file_keeps_default_namespace(self) -> None:
        self.editor.delete(self.project, ".//msb:WindowsTargetPlatformVersion")

        text = self.project.read_text(encoding="utf-8")
        self.assertNotIn("ns0:", text)
        self.assertIn(f'xmlns="{MSBUILD_NS}"', text)
        self.assertNotIn("WindowsTargetPlatformVersion", text)
        root = ET.parse(self.project).getroot()
        self.assertEqual(root.tag, f"{{{MSBUILD_NS}}}Project")

    def test_comments_survive_edits(self) -> None:
        self.project.write_text(
            f'<Project xmlns="{MSBUILD_NS}">\n'
            "  <!-- keep me -->\n"
            "  <PropertyGroup><A>1</A><!-- and me --></PropertyGroup>\n"
            "</Project>\n",
            encoding="utf-8",
        )

        self.assertEqual(self.editor.delete(self.project, ".//msb:A"), 1)
        self.assertEqual(len(self.editor.query(self.project, "/msb:Project/*")), 1)

        text = self.project.read_text(encoding="utf-8")
        self.assertIn("<!-- keep me -->", text)
        self.assertIn("<!-- and me -->", text)
        self.assertNotIn("<A>", text)

    def test_rooted_queries(self) -> None:
        [node] = self.editor.query(self.project, "/msb:Project/msb:PropertyGroup/msb:RootNamespace")
        self.assertEqual(node.text, "leptonica")
        self.assertEqual(len(self.editor.query(self.project, "/msb:Project")), 1)
        self.assertEqual(self.editor.query(self.project, "/msb:Solution/msb:PropertyGroup"), [])

    def test_refuses_to_delete_root(self) -> None:
        with self.assertRaises(ValueError):
            self.editor.delete(self.project, "/msb:Project")

    def test_unknown_prefix(self) -> None:
        with self.assertRaises(ValueError):
            self.editor.query(self.project, "/vs:Project")

    def test_apply_dispatches_on_replacement(self) -> None:
        self.editor.apply(ProjectFileEdit(self.project, ".//msb:RootNamespace", "AlprNet"))
        self.editor.apply(ProjectFileEdit(self.project, ".//msb:PostBuildEvent"))

        [node] = self.editor.query(self.project, ".//msb:RootNamespace")
        self.assertEqual(node.text, "AlprNet")
        self.assertEqual(self.editor.query(self.project, ".//msb:PostBuildEvent"), [])

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            self.editor.delete(self.project.with_name("absent.vcxproj"), ".//msb:PostBuildEvent")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
