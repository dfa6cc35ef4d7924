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

"""Demonstration phases for the CRM network policies."""

from __future__ import annotations

import time

import httpx
from rich.panel import Panel

from crm_lab import console
from crm_lab.config import DemoConfig
from crm_lab.components import wait_for_tier
from crm_lab.constants import (
    API_CUSTOMERS_PATH,
    DEMO_CUSTOMER,
    DEMO_GATE_ORDER,
    HUBBLE_UI_PORT_MAPPING,
    HUBBLE_UI_SERVICE,
    NS_CRM_APP,
    NS_KUBE_SYSTEM,
    SVC_WEB,
    WEB_PORT_FORWARD,
)
from crm_lab.probes import ALLOWED_PROBES, BLOCKED_PROBES, run_probes
from crm_lab.results import ProbeResult, StepResult, StepStatus
from crm_lab.utils import discover_entry_point, print_tool_output, run_kubectl

KEY_TAKEAWAYS = (
    "External traffic can only reach Web tier",
    "Web tier can only reach App tier",
    "App tier can only reach DB tier",
    "All other traffic is denied by default (zero trust)",
)


def demo_header(title: str) -> None:
    console.print(Panel.fit(title, style="bold blue"))


def info(message: str) -> None:
    console.print(f"[yellow]→[/yellow] {message}")


def wait_for_pods(demo_cfg: DemoConfig) -> None:
    """Block until every tier has ready pods, then let traffic settle.

    Args:
        demo_cfg: Demo configuration with the gate timeout and settle delay.

    Raises:
        RuntimeError: If any tier is not ready in time.
    """
    info("Waiting for all pods to be ready...")
    for tier in DEMO_GATE_ORDER:
        result = wait_for_tier(tier, demo_cfg.ready_timeout)
        if not result.ok:
            raise RuntimeError(f"{tier.title} tier not ready: {result.detail}")
    time.sleep(demo_cfg.settle_seconds)


def demo_allowed_traffic(demo_cfg: DemoConfig) -> list[ProbeResult]:
    demo_header("DEMO 1: Allowed Traffic Patterns")
    results = run_probes(ALLOWED_PROBES, demo_cfg.probe_timeout)
    console.print()
    return results


def demo_blocked_traffic(demo_cfg: DemoConfig) -> list[ProbeResult]:
    demo_header("DEMO 2: Blocked Traffic Patterns (Security Enforcement)")
    results = run_probes(BLOCKED_PROBES, demo_cfg.probe_timeout)
    console.print()
    return results


def _query(name: str, args: list[str]) -> StepResult:
    ok, stdout, stderr = run_kubectl(args)
    if ok:
        print_tool_output(stdout)
        return StepResult(name, StepStatus.OK)
    console.print(f"[red]✗[/red] {name} failed: {stderr.strip()[:200]}")
    return StepResult(name, StepStatus.FAILED, stderr.strip()[:200])


def demo_cilium_observability() -> list[StepResult]:
    """Dump Cilium endpoint and policy status with read-only queries."""
    demo_header("DEMO 3: Cilium Observability")

    info("Checking Cilium endpoint status...")
    results = [_query("cilium endpoints", ["get", "cep", "-n", NS_CRM_APP])]

    console.print()
    info("Viewing CiliumNetworkPolicy details...")
    results.append(_query("cilium network policies", ["describe", "cnp", "-n", NS_CRM_APP]))

    console.print()
    info("To view real-time traffic flow, you can use Cilium Hubble:")
    info(f"  kubectl port-forward -n {NS_KUBE_SYSTEM} {HUBBLE_UI_SERVICE} {HUBBLE_UI_PORT_MAPPING}")
    info(f"  Then open http://localhost:{HUBBLE_UI_PORT_MAPPING.split(':')[0]} in your browser")
    console.print()
    return results


def _print_response(response: httpx.Response) -> None:
    try:
        console.print_json(data=response.json())
    except ValueError:
        print_tool_output(response.text)


def call_api(client: httpx.Client, method: str, name: str, **kwargs) -> StepResult:
    """Issue one API request and print its body.

    Args:
        client: HTTP client bound to the web tier entry point.
        method: HTTP method.
        name: Label for the summary table.
        **kwargs: Passed through to ``client.request``.

    Returns:
        OK for a 2xx response, FAILED otherwise.
    """
    try:
        response = client.request(method, API_CUSTOMERS_PATH, **kwargs)
    except httpx.HTTPError as e:
        console.print(f"[red]✗[/red] {name} failed: {e}")
        return StepResult(name, StepStatus.FAILED, str(e))
    _print_response(response)
    if response.is_success:
        return StepResult(name, StepStatus.OK, f"HTTP {response.status_code}")
    return StepResult(name, StepStatus.FAILED, f"HTTP {response.status_code}")


def demo_application_functionality(demo_cfg: DemoConfig, transport: httpx.BaseTransport | None = None) -> list[StepResult]:
    """Exercise the customer API through the web tier's external address.

    Args:
        demo_cfg: Demo configuration with the HTTP timeout.
        transport: Optional httpx transport override.

    Returns:
        Outcomes of the two API calls, or a single SKIPPED entry when the
        web service has no external address yet.
    """
    demo_header("DEMO 4: Application Functionality")
    info("Testing end-to-end application flow...")

    entry_point = discover_entry_point(SVC_WEB)
    if not entry_point:
        info("LoadBalancer IP not available, using port-forward...")
        info(f"In another terminal, run: kubectl port-forward -n {NS_CRM_APP} svc/{SVC_WEB} {WEB_PORT_FORWARD}")
        info(f"Then test with: curl http://localhost:{WEB_PORT_FORWARD.split(':')[0]}{API_CUSTOMERS_PATH}")
        return [StepResult("customer API", StepStatus.SKIPPED, "no LoadBalancer address")]

    results = []
    with httpx.Client(base_url=f"http://{entry_point}", timeout=demo_cfg.http_timeout, transport=transport) as client:
        info("Fetching customers via API...")
        results.append(call_api(client, "GET", "list customers"))
        console.print()
        info("Creating a new customer...")
        results.append(call_api(client, "POST", "create customer", json=DEMO_CUSTOMER))
    console.print()
    return results


def print_takeaways() -> None:
    demo_header("Demo Complete!")
    info("Key Takeaways:")
    for idx, line in enumerate(KEY_TAKEAWAYS, start=1):
        info(f"{idx}. {line}")
    console.print()
