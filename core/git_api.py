"""Git working-tree access: pygit2 for reads, the git CLI for writes."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Optional

import pygit2

from .command_runner import (
    CommandResult,
    CommandRunner,
    SubprocessCommandRunner,
)


class GitRepository:
    """
    Minimal API over a third-party source checkout.

    Design Philosophy:
    - READ operations use pygit2 for performance and structured data.
    - WRITE operations use Git CLI so the user's git configuration is respected.
    """

    def __init__(
        self,
        path: Path | str,
        runner: Optional[CommandRunner] = None,
        *,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.path = Path(path).resolve()
        self._repo: Optional[pygit2.Repository] = None
        self._runner = runner or SubprocessCommandRunner()
        self._env = env

    # --- Core & Properties (pygit2) ---

    def open(self) -> None:
        """Opens the repository. Raises exception if not found."""
        try:
            self._repo = pygit2.Repository(str(self.path))
        except pygit2.GitError as e:
            raise RuntimeError(f"Failed to open repository at {self.path}: {e}")

    @property
    def repo(self) -> pygit2.Repository:
        if self._repo is None:
            self.open()
        return self._repo  # type: ignore

    @property
    def is_valid(self) -> bool:
        """Checks if the path is a git working tree."""
        if not self.path.exists():
            return False
        try:
            self.open()
        except RuntimeError:
            return False
        return not self.repo.is_bare

    @property
    def root_dir(self) -> Path:
        workdir = self.repo.workdir
        return Path(workdir) if workdir else self.path

    @property
    def git_dir(self) -> Path:
        """Returns the .git directory path."""
        return Path(self.repo.path)

    def is_dirty(self, untracked: bool = False) -> bool:
        """Checks if the working directory has uncommitted changes."""
        mode = "normal" if untracked else "no"
        status = self.repo.status(untracked_files=mode)
        return len(status) > 0

    def modified_paths(self) -> List[str]:
        """Tracked paths with local modifications, sorted."""
        status = self.repo.status(untracked_files="no")
        return sorted(path for path, flags in status.items() if flags != pygit2.GIT_STATUS_CURRENT)

    # --- Writes (CLI) ---

    def _run_git(self, args: List[str], *, check: bool = True) -> CommandResult:
        return self._runner.run(
            ["git"] + args,
            cwd=self.root_dir,
            env=self._env,
            check=check,
            note=f"git {args[0]}",
            stream=True,
        )

    def reset_hard(self) -> None:
        """Discard every local modification of tracked files."""
        self._run_git(["reset", "--hard", "--quiet"])

    def apply_patch(self, patch: Path | str) -> CommandResult:
        """Apply ``patch`` to both index and working tree, tolerating whitespace drift."""
        return self._run_git(
            ["apply", "--index", "--ignore-whitespace", "--whitespace=nowarn", str(patch)],
            check=False,
        )


__all__ = ["GitRepository"]
