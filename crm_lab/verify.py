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

"""Read-only verification of a deployed CRM cluster."""

from __future__ import annotations

import sh
from rich.panel import Panel

from crm_lab import console
from crm_lab.constants import NS_CRM_APP, SVC_WEB, WEB_PORT_FORWARD
from crm_lab.probes import VERIFY_PROBES, run_probes
from crm_lab.results import ProbeResult
from crm_lab.utils import discover_entry_point, print_tool_output

# (section title, kubectl get arguments)
STATUS_QUERIES = (
    ("Cluster Status", ("get", "nodes")),
    ("Pod Status", ("get", "pods", "-n", NS_CRM_APP, "-o", "wide")),
    ("Service Status", ("get", "svc", "-n", NS_CRM_APP)),
    ("CiliumNetworkPolicy Status", ("get", "cnp", "-n", NS_CRM_APP)),
)


def print_status() -> None:
    """Print node, pod, service and policy status tables."""
    for title, args in STATUS_QUERIES:
        console.print()
        console.print(f"[blue]=== {title} ===[/blue]")
        print_tool_output(sh.kubectl(*args))


def print_entry_point() -> str | None:
    """Print how to reach the web tier and return its external address."""
    entry_point = discover_entry_point(SVC_WEB)
    if entry_point:
        console.print(f"[green]✅ LoadBalancer IP: {entry_point}[/green]")
        console.print(f"[yellow]ℹ️  You can access the application at: http://{entry_point}[/yellow]")
    else:
        console.print("[yellow]⚠️  LoadBalancer IP not yet assigned. For kind, you may need to use port-forward:[/yellow]")
        console.print(f"  kubectl port-forward -n {NS_CRM_APP} svc/{SVC_WEB} {WEB_PORT_FORWARD}")
        console.print(f"  Then access at: http://localhost:{WEB_PORT_FORWARD.split(':')[0]}")
    return entry_point


def verify_deployment(probe_timeout: int) -> list[ProbeResult]:
    """Query cluster status and probe web and application connectivity.

    Nothing in the cluster is modified; the only side effects are the two
    HTTP requests made from inside the web pod.

    Args:
        probe_timeout: Seconds allowed for each probe.

    Returns:
        Outcomes of the two connectivity probes.
    """
    console.print(Panel.fit("Verifying deployment", style="bold blue"))
    print_status()

    console.print()
    console.print("[blue]=== Testing Connectivity ===[/blue]")
    results = run_probes(VERIFY_PROBES, probe_timeout)

    console.print()
    print_entry_point()
    console.print()
    console.print("[green]✅ Verification complete[/green]")
    return results
