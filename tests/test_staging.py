from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from support import OPENALPR_CONF, quiet_console
from winbuild.staging import ArtifactStager, StagingRule


class ArtifactStagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.build = self.root / "openalpr"
        self.dist = self.root / "dist"
        for relative in (
            "Release/alpr.exe",
            "openalpr/Release/openalpr.dll",
            "openalpr/Release/openalpr.lib",
            "openalpr/Release/openalpr.pdb",
            "CMakeFiles/3.4.0/CompilerIdCXX/CompilerIdCXX.exe",
        ):
            path = self.build / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(relative)
        self.console, self.out, _ = quiet_console()
        self.stager = ArtifactStager(self.console)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_recursive_rule_flattens_matches(self) -> None:
        copied = self.stager.stage([StagingRule(self.build, ("*.exe", "*.dll", "*.lib"), self.dist, recursive=True)])

        self.assertEqual(sorted(path.name for path in copied), ["alpr.exe", "openalpr.dll", "openalpr.lib"])
        self.assertEqual((self.dist / "openalpr.dll").read_text(), "openalpr/Release/openalpr.dll")
        self.assertFalse((self.dist / "CompilerIdCXX.exe").exists())
        self.assertFalse((self.dist / "openalpr.pdb").exists())

    def test_flat_rule_ignores_subdirectories(self) -> None:
        rule = StagingRule(self.build / "openalpr", ("*.dll",), self.dist)
        self.assertEqual(self.stager.collect(rule), [])

    def test_rule_without_matches_warns(self) -> None:
        copied = self.stager.stage([StagingRule(self.root / "missing", ("*.dll",), self.dist)])

        self.assertEqual(copied, [])
        self.assertIn("[WARN] No files matching *.dll", self.out.getvalue())
        self.assertFalse(self.dist.exists())

    def test_overlapping_patterns_copy_once(self) -> None:
        rule = StagingRule(self.build / "Release", ("*.exe", "alpr.*"), self.dist)
        self.assertEqual([path.name for path in self.stager.collect(rule)], ["alpr.exe"])

    def test_copy_tree(self) -> None:
        runtime = self.root / "runtime_data" / "ocr"
        runtime.mkdir(parents=True)
        (runtime / "lus.traineddata").write_text("data")

        self.stager.copy_tree(self.root / "runtime_data", self.dist / "runtime_data")
        self.stager.copy_tree(self.root / "runtime_data", self.dist / "runtime_data")

        self.assertEqual((self.dist / "runtime_data" / "ocr" / "lus.traineddata").read_text(), "data")

    def test_copy_tree_requires_source(self) -> None:
        with self.assertRaises(FileNotFoundError):
            self.stager.copy_tree(self.root / "absent", self.dist / "absent")

    def test_render_config_points_at_runtime_data(self) -> None:
        template = self.root / "openalpr.conf.in"
        template.write_text(OPENALPR_CONF, encoding="utf-8")

        target = self.stager.render_config(template, self.dist / "openalpr.conf")

        lines = target.read_text(encoding="utf-8").splitlines()
        self.assertIn("runtime_dir = runtime_data", lines)
        self.assertNotIn("CMAKE_INSTALL_PREFIX", target.read_text(encoding="utf-8"))
        self.assertEqual(len(lines), len(OPENALPR_CONF.splitlines()))

    def test_render_config_without_runtime_dir_warns(self) -> None:
        template = self.root / "plain.conf.in"
        template.write_text("max_plate_width_percent = 100\n", encoding="utf-8")
        self.stager.render_config(template, self.dist / "plain.conf")
        self.assertIn("has no runtime_dir entry", self.out.getvalue())


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
