"""Live progress display using Rich library.

One progress row per entity type phase, plus an overall bar across phases.
The display is a single Live instance for the whole run; tasks are only ever
updated, never reset, so phases that run again (an identity pass followed by
the full phase) reuse their row.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

from profile_bridge.resources import EntityType, get_description
from profile_bridge.sync.result import SyncResult


class SyncColors:
    """Rich color names used across console output."""

    INFO = "cyan"
    SUCCESS = "green"
    WARNING = "yellow"
    ERROR = "red"

    PROGRESS = "blue"
    PHASE = "magenta"
    SPINNER = "dark_slate_gray1"

    RUNNING = "yellow"
    COMPLETE = "green"
    FAILED = "red"
    PENDING = "dim"

    RATE = "bright_blue"
    TIME = "bright_magenta"

    BORDER = "blue"
    HEADER = "bold bright_white"


class StatusIconColumn(ProgressColumn):
    """Shows a check when complete, a warning on item failures, a cross on phase failure."""

    def render(self, task):
        status = task.fields.get("status_text", "pending")

        if status == "failed":
            return Text("✗", style=SyncColors.FAILED)
        if status == "complete_with_issues":
            return Text("⚠", style=SyncColors.WARNING)
        if status == "complete":
            return Text("✓", style=SyncColors.COMPLETE)
        if status == "running":
            # SpinnerColumn covers running tasks
            return Text("")
        return Text("•", style=SyncColors.PENDING)


@dataclass
class PhaseProgressState:
    """Counters and timing for one entity type phase."""

    entity_type: EntityType
    total_items: int
    created: int = 0
    updated: int = 0
    failed: int = 0
    phase_error: str | None = None
    identity_only: bool = False
    start_time: float = field(default_factory=time.time)

    def update(self, result: SyncResult) -> None:
        self.created = result.created
        self.updated = result.updated
        self.failed = result.failed
        self.phase_error = result.phase_error

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.failed

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def average_rate(self) -> float:
        elapsed = self.elapsed_time
        if elapsed <= 0:
            return 0.0
        return self.processed / elapsed

    @property
    def status_text(self) -> str:
        if self.phase_error:
            return "failed"
        if self.processed >= self.total_items:
            return "complete_with_issues" if self.failed else "complete"
        if self.processed == 0:
            return "pending"
        return "running"

    @property
    def formatted_metrics(self) -> str:
        """Compact inline metrics with fixed-width columns."""
        if self.phase_error:
            return f"[{SyncColors.ERROR}]{self.phase_error}[/{SyncColors.ERROR}]"
        if self.identity_only:
            return "[dim]identities collected[/dim]"
        return (
            f"[{SyncColors.RATE}]{self.average_rate:>5.1f}/s[/{SyncColors.RATE}]"
            f" [{SyncColors.SUCCESS}]New:{self.created:<4}[/{SyncColors.SUCCESS}]"
            f" [{SyncColors.INFO}]Upd:{self.updated:<4}[/{SyncColors.INFO}]"
            f" [{SyncColors.ERROR}]Err:{self.failed:<3}[/{SyncColors.ERROR}]"
            f" [{SyncColors.TIME}]{self.elapsed_time:>5.1f}s[/{SyncColors.TIME}]"
        )


class SyncProgressDisplay:
    """Live progress display for export and restore runs.

    Example:
        >>> with SyncProgressDisplay(title="Restore") as progress:
        ...     progress.set_total_phases(3)
        ...     orchestrator = SyncOrchestrator(config, target, progress=progress, ...)
        ...     report = await orchestrator.run_restore()
    """

    def __init__(self, enabled: bool = True, title: str = "Profile Bridge"):
        """Initialize progress display.

        Args:
            enabled: Whether to show live progress (set False for CI/CD)
            title: Display title for the progress panel
        """
        self.enabled = enabled
        self.title = title

        self.phase_states: dict[EntityType, PhaseProgressState] = {}
        self.phase_tasks: dict[EntityType, TaskID] = {}
        self.overall_task: TaskID | None = None
        self.total_phases = 0
        self._original_log_handlers: list[logging.Handler] = []
        self._live_started = False

        if not self.enabled:
            return

        self.console = Console(stderr=True, width=120)

        self.phase_progress = Progress(
            TextColumn("[{task.fields[start_time]}]", style="dim"),
            StatusIconColumn(),
            SpinnerColumn(style=SyncColors.SPINNER),
            TaskProgressColumn(style=SyncColors.PROGRESS),
            TextColumn("{task.description:<26}", style=SyncColors.PHASE),
            BarColumn(bar_width=10, style=SyncColors.PROGRESS),
            TextColumn("{task.completed:>4}/{task.total:<4}"),
            TextColumn("{task.fields[metrics]}"),
            console=self.console,
        )

        self.overall_progress = Progress(
            TextColumn("[bold]Overall", style=SyncColors.HEADER),
            BarColumn(bar_width=None, style=SyncColors.PROGRESS),
            TaskProgressColumn(),
            TextColumn("({task.completed}/{task.total} phases)"),
            TimeElapsedColumn(),
            console=self.console,
        )

        self.live = Live(
            Group(
                Panel(
                    self.phase_progress,
                    title=self.title,
                    title_align="left",
                    border_style=SyncColors.BORDER,
                ),
                self.overall_progress,
            ),
            console=self.console,
            refresh_per_second=10,
        )

    def start(self) -> None:
        """Detach console log handlers so they do not tear the live display."""
        if not self.enabled:
            return
        root_logger = logging.getLogger()
        self._original_log_handlers = root_logger.handlers[:]
        for handler in root_logger.handlers[:]:
            if "RichHandler" in handler.__class__.__name__:
                root_logger.removeHandler(handler)

    def stop(self) -> None:
        """Stop the live display and restore console logging."""
        if not self.enabled:
            return
        if self._live_started:
            self.live.stop()
            self._live_started = False

        if self._original_log_handlers:
            root_logger = logging.getLogger()
            for handler in self._original_log_handlers:
                if handler not in root_logger.handlers:
                    root_logger.addHandler(handler)
            self._original_log_handlers = []

    def set_total_phases(self, total: int) -> None:
        self.total_phases = total
        if self.enabled and total > 0 and self.overall_task is None:
            self.overall_task = self.overall_progress.add_task("overall", total=total)

    def _ensure_live(self) -> None:
        if not self._live_started:
            self.live.start()
            self._live_started = True

    def _ensure_task(self, entity_type: EntityType, total: int, identity_only: bool) -> PhaseProgressState:
        state = PhaseProgressState(entity_type=entity_type, total_items=total, identity_only=identity_only)
        self.phase_states[entity_type] = state

        fields = {
            "total": total,
            "completed": 0,
            "start_time": datetime.now().strftime("%H:%M:%S"),
            "status_text": "running",
            "metrics": state.formatted_metrics,
        }
        description = get_description(entity_type)
        if entity_type in self.phase_tasks:
            self.phase_progress.update(self.phase_tasks[entity_type], description=description, **fields)
        else:
            self.phase_tasks[entity_type] = self.phase_progress.add_task(description, **fields)
        return state

    def start_phase(self, entity_type: EntityType, total: int, identity_only: bool = False) -> None:
        """Show a phase as running.

        Args:
            entity_type: Entity type of the phase
            total: Number of items the phase will process
            identity_only: The phase only collects identities
        """
        if not self.enabled:
            return
        self._ensure_live()
        self._ensure_task(entity_type, total, identity_only)

    def update_phase(self, entity_type: EntityType, result: SyncResult) -> None:
        """Refresh a running phase from its accumulating result."""
        if not self.enabled or entity_type not in self.phase_states:
            return
        state = self.phase_states[entity_type]
        state.update(result)
        self.phase_progress.update(
            self.phase_tasks[entity_type],
            completed=state.processed,
            status_text=state.status_text,
            metrics=state.formatted_metrics,
        )

    def complete_phase(self, entity_type: EntityType, result: SyncResult) -> None:
        """Mark a phase finished, including phases that failed before starting."""
        if not self.enabled:
            return
        self._ensure_live()
        state = self.phase_states.get(entity_type)
        if state is None:
            state = self._ensure_task(entity_type, result.processed, result.identity_only)
        state.update(result)
        if state.processed >= state.total_items and not state.phase_error:
            state.total_items = state.processed

        self.phase_progress.update(
            self.phase_tasks[entity_type],
            total=max(state.total_items, 1) if state.identity_only else state.total_items,
            completed=max(state.total_items, 1) if state.identity_only else state.processed,
            status_text=state.status_text,
            metrics=state.formatted_metrics,
        )

        if self.overall_task is not None and not result.identity_only:
            self.overall_progress.advance(self.overall_task)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
