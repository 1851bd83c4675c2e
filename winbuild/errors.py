"""Error taxonomy for the build pipeline.

Every error is terminal: nothing in the pipeline catches a :class:`BuildError`
to retry or roll back. The CLI turns them into a message and exit status 1.
"""
from __future__ import annotations

from pathlib import Path


class BuildError(RuntimeError):
    """Base class for fatal build failures."""


class ToolMissing(BuildError):
    def __init__(self, tool: str, search_path: str | None = None) -> None:
        message = f"Required tool '{tool}' was not found on PATH"
        if search_path:
            message = f"{message} ({search_path})"
        super().__init__(message)
        self.tool = tool


class ToolchainNotInstalled(BuildError):
    def __init__(self, toolset: str, detail: str) -> None:
        super().__init__(f"Toolchain {toolset} is not installed: {detail}")
        self.toolset = toolset


class ExternalToolFailed(BuildError):
    def __init__(self, executable: str, exit_code: int, step: str | None = None) -> None:
        message = f"'{executable}' exited with code {exit_code}"
        if step:
            message = f"{step}: {message}"
        super().__init__(message)
        self.executable = executable
        self.exit_code = exit_code


class PatchApplyFailed(BuildError):
    def __init__(self, patch_name: str, target: Path, detail: str) -> None:
        super().__init__(f"Patch '{patch_name}' could not be applied to '{target}': {detail}")
        self.patch_name = patch_name
        self.target = target


class AssemblyVersionMismatch(BuildError):
    def __init__(self, path: Path, replaced: int, expected: int = 3) -> None:
        super().__init__(
            f"Expected {expected} assembly version attributes in '{path}', found {replaced}"
        )
        self.path = path
        self.replaced = replaced
        self.expected = expected


class MissingPrerequisite(BuildError):
    def __init__(self, step: str, path: Path) -> None:
        super().__init__(f"Step '{step}' requires '{path}', which does not exist")
        self.step = step
        self.path = path


class StepFailed(BuildError):
    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"Step '{step}' failed: {cause}")
        self.step = step
        self.cause = cause


__all__ = [
    "AssemblyVersionMismatch",
    "BuildError",
    "ExternalToolFailed",
    "MissingPrerequisite",
    "PatchApplyFailed",
    "StepFailed",
    "ToolMissing",
    "ToolchainNotInstalled",
]
