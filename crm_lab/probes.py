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

"""Connectivity probes executed from inside the CRM pods."""

from __future__ import annotations

from dataclasses import dataclass

from crm_lab import console, logger
from crm_lab.constants import (
    APP_HEALTH_URL,
    APP_PORT,
    DB_HOST,
    DB_NAME,
    DB_PASSWORD,
    DB_PORT,
    DB_USER,
    NS_CRM_APP,
    TIER_APP,
    TIER_DB,
    TIER_WEB,
    Tier,
)
from crm_lab.results import ProbeResult
from crm_lab.utils import find_pod, print_tool_output, run_kubectl


@dataclass(frozen=True)
class Probe:
    """A command run inside a tier pod whose success means "traffic got through".

    Attributes:
        name: Short label used in the summary table.
        description: Line printed before the probe runs.
        source: Tier whose first pod executes the command.
        command: Command and arguments passed after ``kubectl exec --``.
        expect_reachable: Whether the network policy should let this through.
        reached_msg: Message when the target answered.
        blocked_msg: Message when the target did not answer.
        show_output: Print the response body when the target answered.
    """

    name: str
    description: str
    source: Tier
    command: tuple[str, ...]
    expect_reachable: bool
    reached_msg: str
    blocked_msg: str
    show_output: bool = False

    def describe(self, reached: bool) -> str:
        return self.reached_msg if reached else self.blocked_msg


def _psql(host: str) -> tuple[str, ...]:
    return (
        "sh", "-c",
        f'PGPASSWORD={DB_PASSWORD} psql -h {host} -U {DB_USER} -d {DB_NAME} -c "SELECT 1;"',
    )


def _tcp_connect(host: str, port: int) -> tuple[str, ...]:
    return (
        "python", "-c",
        f"import socket; socket.create_connection(({host!r}, {port}), timeout=5).close()",
    )


# -- Probes used by the deployment verification pass --
WEB_SELF_HEALTH = Probe(
    name="web health",
    description="Testing web pod health endpoint...",
    source=TIER_WEB,
    command=("wget", "-qO-", "http://localhost/"),
    expect_reachable=True,
    reached_msg="Web health check passed",
    blocked_msg="Web health check failed",
    show_output=True,
)
WEB_TO_APP_HEALTH = Probe(
    name="web -> app",
    description="Testing app service connectivity from web pod...",
    source=TIER_WEB,
    command=("wget", "-qO-", APP_HEALTH_URL),
    expect_reachable=True,
    reached_msg="Web tier can access App tier",
    blocked_msg="App connectivity test failed",
    show_output=True,
)
VERIFY_PROBES = (WEB_SELF_HEALTH, WEB_TO_APP_HEALTH)

# -- Paths the policies must allow --
ALLOWED_PROBES = (
    Probe(
        name="external -> web",
        description="Test 1: External access to Web tier (should work)",
        source=TIER_WEB,
        command=("wget", "-qO-", "http://127.0.0.1/healthy"),
        expect_reachable=True,
        reached_msg="External can access Web tier",
        blocked_msg="External cannot access Web tier",
    ),
    Probe(
        name="web -> app",
        description="Test 2: Web tier accessing App tier (should work)",
        source=TIER_WEB,
        command=("wget", "-qO-", APP_HEALTH_URL),
        expect_reachable=True,
        reached_msg="Web tier can access App tier",
        blocked_msg="Web tier cannot access App tier",
        show_output=True,
    ),
    Probe(
        name="app -> db",
        description="Test 3: App tier accessing DB tier (should work)",
        source=TIER_APP,
        command=_tcp_connect(DB_HOST, DB_PORT),
        expect_reachable=True,
        reached_msg="App tier can access DB tier",
        blocked_msg="App tier cannot access DB tier",
    ),
)

# -- Paths the policies must deny --
BLOCKED_PROBES = (
    Probe(
        name="external -> app",
        description="Test 1: External trying to access App tier directly (should be blocked)",
        source=TIER_APP,
        command=("wget", "-qO-", f"http://localhost:{APP_PORT}/health"),
        expect_reachable=False,
        reached_msg="External CAN access App tier (security issue!)",
        blocked_msg="External CANNOT access App tier directly (correctly blocked)",
    ),
    Probe(
        name="external -> db",
        description="Test 2: External trying to access DB tier directly (should be blocked)",
        source=TIER_DB,
        command=_psql("localhost"),
        expect_reachable=False,
        reached_msg="External CAN access DB tier (security issue!)",
        blocked_msg="External CANNOT access DB tier directly (correctly blocked)",
    ),
    Probe(
        name="web -> db",
        description="Test 3: Web tier trying to access DB tier directly (should be blocked)",
        source=TIER_WEB,
        command=_psql(DB_HOST),
        expect_reachable=False,
        reached_msg="Web tier CAN access DB tier (security issue!)",
        blocked_msg="Web tier CANNOT access DB tier directly (correctly blocked)",
    ),
)


def run_probe(probe: Probe, timeout: int, namespace: str = NS_CRM_APP) -> ProbeResult:
    """Execute *probe* in the first pod of its source tier.

    Args:
        probe: Probe to execute.
        timeout: Seconds allowed for the exec.
        namespace: Namespace of the source pod.

    Returns:
        Probe outcome. ``reached`` is None when no source pod exists.
    """
    pod = find_pod(probe.source.selector, namespace)
    if pod is None:
        return ProbeResult(probe, None, detail=f"no pod matching {probe.source.selector}")

    logger.debug("probe %s from %s: %s", probe.name, pod, " ".join(probe.command))
    ok, stdout, stderr = run_kubectl(["exec", "-n", namespace, pod, "--", *probe.command], timeout=timeout)
    return ProbeResult(probe, ok, output=stdout, detail=stderr.strip()[:200])


def report_probe(result: ProbeResult) -> None:
    """Print a pass/fail line for *result*."""
    if result.reached is None:
        console.print(f"[red]✗[/red] {result.probe.name}: {result.detail}")
        return
    mark = "[green]✓[/green]" if result.matched else "[red]✗[/red]"
    console.print(f"{mark} {result.probe.describe(result.reached)}")
    if result.reached and result.probe.show_output:
        print_tool_output(result.output)


def run_probes(probes, timeout: int, namespace: str = NS_CRM_APP) -> list[ProbeResult]:
    """Run each probe independently, printing results as they come in."""
    results = []
    for probe in probes:
        console.print(f"[yellow]→[/yellow] {probe.description}")
        result = run_probe(probe, timeout, namespace)
        report_probe(result)
        results.append(result)
    return results
