# /*
# Copyright 2026 The Cilium CRM Lab Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Outcome types for best-effort steps and the end-of-run summary."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from crm_lab.probes import Probe


class StepStatus(str, Enum):
    OK = "ok"
    TIMED_OUT = "timed out"
    FAILED = "failed"
    SKIPPED = "skipped"


_STATUS_STYLE = {
    StepStatus.OK: "green",
    StepStatus.TIMED_OUT: "yellow",
    StepStatus.FAILED: "red",
    StepStatus.SKIPPED: "dim",
}


@dataclass(frozen=True)
class StepResult:
    """Outcome of a step that is allowed to fail without stopping the run.

    Attributes:
        name: Short description of the step.
        status: How the step ended.
        detail: Extra context such as trimmed kubectl stderr.
    """

    name: str
    status: StepStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is StepStatus.OK


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single connectivity probe.

    Attributes:
        probe: The probe that was executed.
        reached: Whether the target answered, or None if the probe could not run.
        output: Captured stdout of the probe command.
        detail: Captured stderr, or why the probe could not run.
    """

    probe: Probe
    reached: bool | None
    output: str = ""
    detail: str = ""

    @property
    def matched(self) -> bool:
        """True when the observed result is what the policy should produce."""
        return self.reached is not None and self.reached == self.probe.expect_reachable

    def as_step(self) -> StepResult:
        if self.reached is None:
            return StepResult(self.probe.name, StepStatus.FAILED, self.detail)
        status = StepStatus.OK if self.matched else StepStatus.FAILED
        return StepResult(self.probe.name, status, self.probe.describe(self.reached))


@dataclass
class RunReport:
    """Collects step outcomes for a driver run and renders them as a table."""

    title: str
    results: list[StepResult] = field(default_factory=list)

    def add(self, result: StepResult | ProbeResult) -> None:
        if isinstance(result, ProbeResult):
            result = result.as_step()
        self.results.append(result)

    def extend(self, results) -> None:
        for result in results:
            self.add(result)

    @property
    def problems(self) -> list[StepResult]:
        return [r for r in self.results if r.status in (StepStatus.TIMED_OUT, StepStatus.FAILED)]

    @property
    def has_problems(self) -> bool:
        return bool(self.problems)

    def render(self) -> Table:
        table = Table(title=self.title, title_style="bold blue")
        table.add_column("Step")
        table.add_column("Status")
        table.add_column("Detail", overflow="fold")
        for result in self.results:
            table.add_row(
                Text(result.name),
                Text(result.status.value, style=_STATUS_STYLE[result.status]),
                Text(result.detail),
            )
        return table
