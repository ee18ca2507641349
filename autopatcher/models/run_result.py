"""Per-descriptor outcome and run report models."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from autopatcher.models.patch_descriptor import PatchDescriptor


class Outcome(StrEnum):
    """Classification of one descriptor at the end of a run."""

    MISSING = "missing"
    PATCHED = "patched"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class RunResult:
    """Outcome for a single descriptor."""

    descriptor: PatchDescriptor
    outcome: Outcome
    reason: str = ""  # set for FAILED
    rom_path: Path | None = None
    output_path: Path | None = None

    @classmethod
    def missing(cls, descriptor: PatchDescriptor) -> RunResult:
        return cls(descriptor, Outcome.MISSING)

    @classmethod
    def failed(
        cls, descriptor: PatchDescriptor, reason: str, rom_path: Path | None = None
    ) -> RunResult:
        return cls(descriptor, Outcome.FAILED, reason=reason, rom_path=rom_path)


@dataclass(frozen=True)
class RunReport:
    """
    Immutable result of a batch run, one ``RunResult`` per manifest entry,
    in manifest order.
    """

    results: tuple[RunResult, ...] = field(default_factory=tuple)
    updated: str = ""

    def of(self, outcome: Outcome) -> list[RunResult]:
        return [r for r in self.results if r.outcome is outcome]

    @property
    def missing(self) -> list[RunResult]:
        return self.of(Outcome.MISSING)

    @property
    def patched(self) -> list[RunResult]:
        return self.of(Outcome.PATCHED)

    @property
    def failed(self) -> list[RunResult]:
        return self.of(Outcome.FAILED)

    @property
    def skipped(self) -> list[RunResult]:
        return self.of(Outcome.SKIPPED)

    @property
    def counts(self) -> dict[Outcome, int]:
        counter = Counter(r.outcome for r in self.results)
        return {outcome: counter.get(outcome, 0) for outcome in Outcome}

    def summary(self) -> str:
        c = self.counts
        return (
            f"Patched: {c[Outcome.PATCHED]}, Missing: {c[Outcome.MISSING]}, "
            f"Skipped: {c[Outcome.SKIPPED]}, Failed: {c[Outcome.FAILED]}"
        )

    def render_log(self) -> str:
        """Human-readable summary: per-category counts then itemised lists."""
        c = self.counts
        lines = [
            "autopatcher results",
            f"Patched: {c[Outcome.PATCHED]}",
            f"Missing: {c[Outcome.MISSING]}",
            f"Skipped: {c[Outcome.SKIPPED]}",
            f"Failed: {c[Outcome.FAILED]}",
            "",
            "Failed patches:",
        ]
        lines.extend(f"  {r.descriptor.name}: {r.reason}" for r in self.failed)
        lines += ["", "Patched:"]
        lines.extend(f"  {r.descriptor.name}" for r in self.patched)
        lines += ["", "Missing:"]
        lines.extend(f"  {r.descriptor.name}" for r in self.missing)
        lines += ["", "Skipped patches:"]
        lines.extend(f"  {r.descriptor.name}" for r in self.skipped)
        return "\n".join(lines) + "\n"

    def write_log(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.render_log())
