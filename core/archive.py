"""Archive creation for staged distribution directories."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable
import os
import tarfile
import tempfile

import zstandard as zstd

_ZST_SUFFIXES: tuple[str, ...] = (".tar.zst", ".tzst")


@runtime_checkable
class ArchiveConsole(Protocol):
    """Minimal console interface required by :class:`ArchiveManager`."""

    dry_run: bool

    def info(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def dry(self, message: str) -> None:
        ...


@dataclass(slots=True)
class ArchiveArtifact:
    """Description of filesystem content to package into an archive."""

    source_dir: Path
    label: str | None = None


class ArchiveManager:
    """Create compressed archives from directories."""

    def __init__(
        self,
        console: ArchiveConsole,
    ) -> None:
        self._console = console

    @staticmethod
    def _zstd_thread_count(source_size: int) -> int:
        cpu_count = os.cpu_count() or 1
        if cpu_count <= 1:
            return 1

        size_mb = max(1, source_size) / (1024 * 1024)
        desired = 1
        if size_mb >= 32:
            desired = 2
        if size_mb >= 256:
            desired = 4
        if size_mb >= 1024:
            desired = 8

        return max(1, min(desired, cpu_count))

    @staticmethod
    def _zstd_window_log(source_size: int) -> int:
        if source_size <= 0:
            return 10
        return max(10, min(27, (source_size - 1).bit_length()))

    @classmethod
    def _zstd_compression_params(
            cls, source_size: int) -> zstd.ZstdCompressionParameters:
        size = max(1, source_size)
        window_log = cls._zstd_window_log(size)
        threads = cls._zstd_thread_count(size)

        params_kwargs: dict[str, Any] = {
            "compression_level": 19,
            "threads": threads,
            "write_checksum": True,
            "write_content_size": True,
            "window_log": window_log,
        }
        if threads > 1:
            params_kwargs["job_size"] = max(1 << 20, min(16 * 1024 * 1024, size // threads))

        return zstd.ZstdCompressionParameters(**params_kwargs)

    def create_archive(
        self,
        *,
        artifact: ArchiveArtifact,
        target_path: Path | str,
    ) -> Path:
        """Create a ``.tar.zst`` archive for *artifact* at *target_path*.

        An existing archive at *target_path* is replaced.
        """

        target = Path(target_path).expanduser()
        source_dir = Path(artifact.source_dir).expanduser()

        if not source_dir.exists():
            raise FileNotFoundError(
                f"Archive source directory '{source_dir}' does not exist")

        if not target.name.lower().endswith(_ZST_SUFFIXES):
            supported = ", ".join(_ZST_SUFFIXES)
            raise ValueError(
                f"Unsupported archive target '{target.name}'. Supported: {supported}")

        label = artifact.label or source_dir.name
        if self._console.dry_run:
            self._console.dry(f"Would archive {label} to {target}")
            return target

        target.parent.mkdir(parents=True, exist_ok=True)
        self._make_zst_archive(target_path=target, source_dir=source_dir)

        self._console.info(f"Archived {label} to {target}")
        return target

    def _make_zst_archive(
        self,
        *,
        target_path: Path,
        source_dir: Path,
    ) -> Path:
        temp_tar = self._create_pax_tar(
            root_dir=source_dir,
            temp_dir=target_path.parent)

        try:
            params = self._zstd_compression_params(temp_tar.stat().st_size)
            compressor = zstd.ZstdCompressor(compression_params=params)
            with temp_tar.open("rb") as src, target_path.open("wb") as dst:
                compressor.copy_stream(src, dst)
        finally:
            temp_tar.unlink(missing_ok=True)

        return target_path

    def _create_pax_tar(
            self,
            *,
            root_dir: Path,
            temp_dir: Path) -> Path:
        with tempfile.NamedTemporaryFile(dir=temp_dir, suffix=".tar", delete=False) as temp_handle:
            temp_path = Path(temp_handle.name)

        try:
            with tarfile.open(temp_path, mode="w", format=tarfile.PAX_FORMAT) as tar:
                # Add contents of root_dir to archive root
                for item in sorted(root_dir.iterdir()):
                    tar.add(item, arcname=item.name)
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise

        return temp_path


__all__ = [
    "ArchiveConsole",
    "ArchiveManager",
    "ArchiveArtifact",
]
