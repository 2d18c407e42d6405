"""Run pipeline data types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass

from . import constants


@dataclass(frozen=True)
class EvaluatorConfig:
    """Groups evaluator configuration."""

    max_event_loop_iterations: int = constants.DEFAULT_EVENT_LOOP_ITERATIONS
    verbose: bool = False


@dataclass
class ExecutionStats:
    """Returned execution metrics for a traced run."""

    steps: int = 0
    tasks_executed: int = 0
    console_messages: int = 0
    heap_objects: int = 0
    promises: int = 0
    closures_captured: int = 0
    truncated: bool = False


@dataclass
class PipelineStats:
    """Timing and size statistics for each pipeline stage."""

    source_bytes: int = 0
    source_lines: int = 0

    # Stage timings (seconds)
    parse_time: float = 0.0
    execution_time: float = 0.0
    total_time: float = 0.0

    # Execution stats
    execution_steps: int = 0
    tasks_executed: int = 0
    console_messages: int = 0
    heap_objects: int = 0
    closures_captured: int = 0
    truncated: bool = False
    failed: bool = False

    def report(self) -> str:
        lines = [
            "═══ Pipeline Statistics ═══",
            f"  Source: {self.source_lines} lines, {self.source_bytes} bytes",
            "",
            f"  {'Stage':<20} {'Time':>10}  {'Output':>30}",
            f"  {'─' * 20} {'─' * 10}  {'─' * 30}",
        ]

        stages = [
            ("Parse", self.parse_time, ""),
            (
                "Evaluate",
                self.execution_time,
                f"{self.execution_steps} steps, {self.tasks_executed} tasks",
            ),
        ]
        for name, t, output in stages:
            time_str = f"{t * 1000:>8.1f}ms"
            lines.append(f"  {name:<20} {time_str:>10}  {output:>30}")

        lines.append(f"  {'─' * 20} {'─' * 10}  {'─' * 30}")
        lines.append(f"  {'Total':<20} {self.total_time * 1000:>8.1f}ms")
        lines.append("")
        lines.append(
            f"  Final state: {self.heap_objects} heap objects,"
            f" {self.console_messages} console messages,"
            f" {self.closures_captured} closures"
        )
        if self.truncated:
            lines.append("  Event loop truncated at its iteration ceiling")
        if self.failed:
            lines.append("  Run aborted with an error")
        return "\n".join(lines)
