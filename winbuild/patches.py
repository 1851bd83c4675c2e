"""Idempotent application of unified diffs to third-party checkouts."""
from __future__ import annotations

from pathlib import Path
from typing import Mapping
import hashlib
import shutil

from core.command_runner import CommandRunner
from core.git_api import GitRepository

from .console import Console
from .errors import PatchApplyFailed

MARKER_DIR = "winbuild-patches"


def _digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


class PatchApplicator:
    """Applies named patches from ``patches_dir``.

    Applied state lives in ``<git-dir>/winbuild-patches/<name>.applied``,
    which stores the SHA-256 of the patch that was applied. A re-run with the
    same patch (or with the patch file gone) is a no-op; a changed patch is
    applied again on top of a hard reset.
    """

    def __init__(
        self,
        runner: CommandRunner,
        patches_dir: Path,
        *,
        console: Console | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._runner = runner
        self._patches_dir = patches_dir
        self._console = console or Console(level="error")
        self._env = env

    def marker_path(self, repository: GitRepository, patch_name: str) -> Path:
        return repository.git_dir / MARKER_DIR / f"{patch_name}.applied"

    def is_applied(self, patch_name: str, target_dir: Path) -> bool:
        repository = self._open(patch_name, target_dir)
        return self._up_to_date(repository, patch_name)

    def _open(self, patch_name: str, target_dir: Path) -> GitRepository:
        repository = GitRepository(target_dir, self._runner, env=self._env)
        if not repository.is_valid:
            raise PatchApplyFailed(patch_name, target_dir, "target is not a git working tree")
        return repository

    def _up_to_date(self, repository: GitRepository, patch_name: str) -> bool:
        marker = self.marker_path(repository, patch_name)
        if not marker.is_file():
            return False
        patch = self._patches_dir / patch_name
        if not patch.is_file():
            return True
        return marker.read_text(encoding="utf-8").strip() == _digest(patch)

    def apply(self, patch_name: str, target_dir: Path) -> bool:
        """Apply ``patch_name`` to ``target_dir``; return False when it was already applied."""

        repository = self._open(patch_name, target_dir)
        if self._up_to_date(repository, patch_name):
            self._console.info(f"Patch {patch_name} already applied to {target_dir}")
            return False

        patch = self._patches_dir / patch_name
        if not patch.is_file():
            raise PatchApplyFailed(patch_name, target_dir, f"patch file '{patch}' does not exist")

        if repository.is_dirty():
            modified = ", ".join(repository.modified_paths())
            self._console.warning(f"Discarding local modifications in {target_dir}: {modified}")

        working_copy = repository.root_dir / patch_name
        shutil.copy2(patch, working_copy)
        try:
            repository.reset_hard()
            result = repository.apply_patch(working_copy)
        finally:
            working_copy.unlink(missing_ok=True)

        if result.returncode != 0:
            raise PatchApplyFailed(patch_name, target_dir, f"git apply exited with code {result.returncode}")

        marker = self.marker_path(repository, patch_name)
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.write_text(_digest(patch) + "\n", encoding="utf-8")
        self._console.success(f"Applied {patch_name} to {target_dir}")
        return True


__all__ = ["MARKER_DIR", "PatchApplicator"]
