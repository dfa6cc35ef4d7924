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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

from rich.panel import Panel

from crm_lab import console
from crm_lab.cluster import create_cluster, delete_cluster, load_app_image, wait_for_nodes
from crm_lab.components import (
    apply_security_policies,
    deploy_application,
    install_cilium,
    require_manifests,
)
from crm_lab.config import ClusterConfig, DemoConfig, DeployConfig
from crm_lab.constants import DEMO_PREREQUISITES, DEPLOY_PREREQUISITES
from crm_lab.demo import (
    demo_allowed_traffic,
    demo_application_functionality,
    demo_blocked_traffic,
    demo_cilium_observability,
    print_takeaways,
    wait_for_pods,
)
from crm_lab.results import RunReport
from crm_lab.utils import confirm, require_commands
from crm_lab.verify import verify_deployment


def _check_prerequisites(tools: tuple[str, ...]) -> None:
    console.print(Panel.fit("Checking prerequisites", style="bold blue"))
    require_commands(tools)
    console.print("[green]✅ All prerequisites met[/green]")


def _print_summary(report: RunReport) -> None:
    console.print()
    console.print(report.render())
    if report.has_problems:
        console.print(f"[yellow]⚠️  {len(report.problems)} step(s) did not succeed[/yellow]")


def run_deploy(cluster_cfg: ClusterConfig, deploy_cfg: DeployConfig, assume_yes: bool = False) -> RunReport:
    """Create the cluster, install Cilium, roll out the tiers and apply policies.

    Args:
        cluster_cfg: kind cluster configuration.
        deploy_cfg: Rollout configuration.
        assume_yes: Recreate an existing cluster without prompting.

    Returns:
        Report of every best-effort step, already printed as a summary.

    Raises:
        RuntimeError: If prerequisites or manifests are missing.
        sh.ErrorReturnCode: If a fail-fast tool invocation fails.
    """
    report = RunReport("Deployment summary")

    _check_prerequisites(DEPLOY_PREREQUISITES)
    require_manifests(deploy_cfg.manifests_dir)

    if create_cluster(cluster_cfg, assume_yes=assume_yes):
        load_app_image(cluster_cfg)

    install_cilium(deploy_cfg)
    report.add(wait_for_nodes(deploy_cfg.node_timeout))

    report.extend(deploy_application(deploy_cfg))
    apply_security_policies(deploy_cfg)
    report.extend(verify_deployment(deploy_cfg.probe_timeout))

    console.print()
    console.print("[green]✅ === Deployment Complete ===[/green]")
    console.print("[yellow]ℹ️  Next steps:[/yellow]")
    console.print("  1. Run 'crm-deploy verify' to check status")
    console.print("  2. Access the application using the LoadBalancer IP or port-forward")
    console.print("  3. Run 'crm-deploy cleanup' when done")
    _print_summary(report)
    return report


def run_verify(deploy_cfg: DeployConfig) -> RunReport:
    """Run the read-only verification pass on its own.

    Args:
        deploy_cfg: Rollout configuration with the probe timeout.

    Returns:
        Report of the connectivity probes.
    """
    report = RunReport("Verification summary")
    report.extend(verify_deployment(deploy_cfg.probe_timeout))
    _print_summary(report)
    return report


def run_cleanup(cluster_cfg: ClusterConfig, assume_yes: bool = False) -> bool:
    """Delete the cluster after confirmation.

    Args:
        cluster_cfg: kind cluster configuration with the cluster name.
        assume_yes: Skip the confirmation prompt.

    Returns:
        True if the cluster was deleted.
    """
    console.print("[yellow]⚠️  This will delete the entire cluster and all resources[/yellow]")
    if not confirm("Are you sure?", assume_yes=assume_yes):
        console.print("[yellow]ℹ️  Cleanup cancelled[/yellow]")
        return False
    delete_cluster(cluster_cfg)
    console.print("[green]✅ Cleanup complete[/green]")
    return True


def run_demo(demo_cfg: DemoConfig) -> RunReport:
    """Run the four demonstration phases against a deployed cluster.

    Args:
        demo_cfg: Demo configuration.

    Returns:
        Report of every probe, query and API call.

    Raises:
        RuntimeError: If kubectl is missing or a tier never becomes ready.
    """
    report = RunReport("Demo summary")
    console.print()
    console.print(Panel.fit("Kubernetes Cilium CRM Security Demo", style="bold blue"))

    require_commands(DEMO_PREREQUISITES)
    wait_for_pods(demo_cfg)

    report.extend(demo_allowed_traffic(demo_cfg))
    report.extend(demo_blocked_traffic(demo_cfg))
    report.extend(demo_cilium_observability())
    report.extend(demo_application_functionality(demo_cfg))

    print_takeaways()
    _print_summary(report)
    return report
