"""Ordered, guarded execution of build stages."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Sequence, Tuple
import shutil
import xml.etree.ElementTree as ET

from core.command_runner import CommandError

from .console import Console
from .context import BuildContext
from .errors import ExternalToolFailed, MissingPrerequisite, StepFailed

StageGuard = Callable[[BuildContext], bool]
StepAction = Callable[[BuildContext], None]


@dataclass(frozen=True, slots=True)
class StageStep:
    name: str
    description: str
    action: StepAction
    requires: Tuple[Path, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class Stage:
    name: str
    description: str
    guard: StageGuard
    steps: Tuple[StageStep, ...]


class StageStatus(str, Enum):
    BUILT = "built"
    SKIPPED = "skipped"
    PLANNED = "planned"


@dataclass(frozen=True, slots=True)
class StageOutcome:
    name: str
    status: StageStatus


class BuildPipeline:
    """Runs stages strictly in order and stops at the first failure.

    A stage whose guard holds is skipped before any of its steps run. A step
    only runs once every path it requires exists.
    """

    def __init__(
        self,
        context: BuildContext,
        stages: Sequence[Stage],
        *,
        console: Console,
        dry_run: bool = False,
    ) -> None:
        self._context = context
        self._stages = list(stages)
        self._console = console
        self._dry_run = dry_run

    @property
    def stages(self) -> List[Stage]:
        return list(self._stages)

    def clean(self) -> None:
        paths = self._context.paths
        for directory in (paths.output_root, paths.dist_root):
            if not directory.exists():
                continue
            if self._dry_run:
                self._console.dry(f"Would remove {directory}")
                continue
            self._console.info(f"Removing {directory}")
            try:
                shutil.rmtree(directory)
            except OSError as exc:
                raise StepFailed("clean", exc) from exc

    def run(self) -> List[StageOutcome]:
        if self._context.request.clean:
            self.clean()
        if self._dry_run:
            return self._plan()

        outcomes: List[StageOutcome] = []
        total = len(self._stages)
        for index, stage in enumerate(self._stages, start=1):
            self._console.banner(f"[{index}/{total}] {stage.description}")
            if stage.guard(self._context):
                self._console.info(f"Stage '{stage.name}' is up to date, skipping")
                outcomes.append(StageOutcome(stage.name, StageStatus.SKIPPED))
                continue
            for step in stage.steps:
                self._run_step(stage, step)
            self._console.success(f"Stage '{stage.name}' finished")
            outcomes.append(StageOutcome(stage.name, StageStatus.BUILT))
        return outcomes

    def _run_step(self, stage: Stage, step: StageStep) -> None:
        label = f"{stage.name}/{step.name}"
        for required in step.requires:
            if not required.exists():
                raise MissingPrerequisite(label, required)

        self._console.info(step.description)
        try:
            step.action(self._context)
        except CommandError as exc:
            raise ExternalToolFailed(exc.executable, exc.exit_code, step=label) from exc
        except (OSError, ET.ParseError) as exc:
            raise StepFailed(label, exc) from exc

    def _plan(self) -> List[StageOutcome]:
        outcomes: List[StageOutcome] = []
        for index, stage in enumerate(self._stages, start=1):
            skipped = stage.guard(self._context)
            state = "up to date, would skip" if skipped else "would run"
            self._console.dry(f"Stage {index} {stage.name}: {stage.description} ({state})")
            for step in stage.steps:
                self._console.dry(f"  - {step.name}: {step.description}")
            outcomes.append(StageOutcome(stage.name, StageStatus.SKIPPED if skipped else StageStatus.PLANNED))
        return outcomes


__all__ = [
    "BuildPipeline",
    "Stage",
    "StageGuard",
    "StageOutcome",
    "StageStatus",
    "StageStep",
    "StepAction",
]
