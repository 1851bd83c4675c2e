"""Shared core utilities for build orchestration: processes, git, config, archives."""

from .archive import ArchiveArtifact, ArchiveConsole, ArchiveManager
from .command_runner import (
    CommandError,
    CommandResult,
    CommandRunner,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)
from .config_loader import (
    ConfigLoader,
    FILE_LOADERS,
    find_config_file,
    load_config_file,
    merge_mappings,
    normalize_string_list,
    reject_unknown_keys,
)
from .git_api import GitRepository

__all__ = [
    "ArchiveConsole",
    "ArchiveManager",
    "ArchiveArtifact",
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "ConfigLoader",
    "FILE_LOADERS",
    "find_config_file",
    "load_config_file",
    "merge_mappings",
    "normalize_string_list",
    "reject_unknown_keys",
    "GitRepository",
]
