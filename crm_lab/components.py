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

"""Cilium installation, tiered application rollout, and network policies."""

from __future__ import annotations

import time
from pathlib import Path

import sh
from rich.panel import Panel
from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed

from crm_lab import console
from crm_lab.config import DeployConfig
from crm_lab.constants import (
    CILIUM_CHART,
    CILIUM_HELM_VALUES,
    CILIUM_POD_LABEL,
    CILIUM_REPO_NAME,
    CILIUM_REPO_URL,
    DB_INIT_JOB,
    HELM_RELEASE_CILIUM,
    NS_CRM_APP,
    NS_KUBE_SYSTEM,
    POD_SCHEDULE_POLL_INTERVAL_SECONDS,
    REL_DB_INIT_JOB,
    REL_NAMESPACE_YAML,
    REL_POLICY_YAML,
    ROLLOUT_ORDER,
    TIER_DB,
    Tier,
)
from crm_lab.results import StepResult, StepStatus
from crm_lab.utils import kubectl_wait, print_tool_output, run_kubectl


# ============================================================================
# Cilium
# ============================================================================

def install_cilium(deploy_cfg: DeployConfig) -> None:
    """Install Cilium via Helm and wait for the agent pods.

    Args:
        deploy_cfg: Rollout configuration with the chart version and timeout.

    Raises:
        sh.ErrorReturnCode: If Helm fails or the agents never become ready.
    """
    console.print(Panel.fit("Installing Cilium CNI", style="bold blue"))
    console.print(f"[yellow]Version: {deploy_cfg.cilium_version}[/yellow]")

    sh.helm("repo", "add", CILIUM_REPO_NAME, CILIUM_REPO_URL, "--force-update")
    sh.helm("repo", "update", CILIUM_REPO_NAME)

    set_args = [item for value in CILIUM_HELM_VALUES for item in ("--set", value)]
    sh.helm(
        "upgrade", "--install", HELM_RELEASE_CILIUM, CILIUM_CHART,
        "--version", deploy_cfg.cilium_version,
        "--namespace", NS_KUBE_SYSTEM,
        *set_args,
        "--wait",
    )

    console.print("[yellow]ℹ️  Waiting for Cilium to be ready...[/yellow]")
    sh.kubectl(
        "wait", "--for=condition=ready", "pod",
        "-l", CILIUM_POD_LABEL, "-n", NS_KUBE_SYSTEM,
        f"--timeout={deploy_cfg.cilium_timeout}s",
    )
    console.print("[green]✅ Cilium installed successfully[/green]")


# ============================================================================
# Readiness
# ============================================================================

def _pods_scheduled(selector: str, namespace: str) -> bool:
    ok, stdout, _ = run_kubectl(["get", "pods", "-n", namespace, "-l", selector, "-o", "name"])
    return ok and bool(stdout.strip())


def _wait_pods_scheduled(selector: str, namespace: str, timeout: float) -> bool:
    """Poll until at least one pod matches *selector*.

    ``kubectl wait`` on a label selector fails straight away when nothing
    matches yet, so pod creation has to be observed first.

    Args:
        selector: Label selector of the pods.
        namespace: Namespace of the pods.
        timeout: Seconds to keep polling.

    Returns:
        True if a matching pod appeared within the timeout.
    """
    @retry(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(POD_SCHEDULE_POLL_INTERVAL_SECONDS),
        retry=retry_if_result(lambda found: not found),
    )
    def _poll() -> bool:
        return _pods_scheduled(selector, namespace)

    try:
        return _poll()
    except RetryError:
        return False


def wait_for_tier(tier: Tier, timeout: int, namespace: str = NS_CRM_APP) -> StepResult:
    """Wait for the pods of one application tier to report ready.

    Args:
        tier: Tier whose pods to wait for.
        timeout: Overall seconds budget for pod creation plus readiness.
        namespace: Namespace of the tier.

    Returns:
        OK, or TIMED_OUT with the reason.
    """
    name = f"{tier.title} pods ready"
    started = time.monotonic()
    if not _wait_pods_scheduled(tier.selector, namespace, timeout):
        return StepResult(name, StepStatus.TIMED_OUT, f"no pods matching {tier.selector} after {timeout}s")

    remaining = max(1, int(timeout - (time.monotonic() - started)))
    ok, _, stderr = kubectl_wait(
        ["--for=condition=ready", "pod", "-l", tier.selector, "-n", namespace],
        remaining,
    )
    if ok:
        return StepResult(name, StepStatus.OK)
    return StepResult(name, StepStatus.TIMED_OUT, stderr.strip()[:200])


def wait_for_namespace(namespace: str, timeout: int) -> StepResult:
    ok, _, stderr = kubectl_wait(
        ["--for=jsonpath={.status.phase}=Active", f"namespace/{namespace}"],
        timeout,
    )
    if ok:
        return StepResult(f"namespace {namespace} active", StepStatus.OK)
    return StepResult(f"namespace {namespace} active", StepStatus.TIMED_OUT, stderr.strip()[:200])


def wait_for_job(job: str, timeout: int, namespace: str = NS_CRM_APP) -> StepResult:
    ok, _, stderr = kubectl_wait(
        ["--for=condition=complete", f"job/{job}", "-n", namespace],
        timeout,
    )
    if ok:
        return StepResult(f"job {job} complete", StepStatus.OK)
    return StepResult(f"job {job} complete", StepStatus.TIMED_OUT, stderr.strip()[:200])


def _report(result: StepResult) -> StepResult:
    if result.ok:
        console.print(f"[green]✅ {result.name}[/green]")
    else:
        console.print(f"[yellow]⚠️  {result.name}: {result.status.value}, continuing[/yellow]")
    return result


# ============================================================================
# Application rollout
# ============================================================================

def apply_manifest(path: Path) -> None:
    """Apply a manifest file or directory.

    Args:
        path: File or directory passed to ``kubectl apply -f``.

    Raises:
        sh.ErrorReturnCode: If kubectl rejects the manifests.
    """
    print_tool_output(sh.kubectl("apply", "-f", str(path)))


def require_manifests(manifests_dir: Path) -> None:
    """Check the manifests directory before touching the cluster.

    Raises:
        RuntimeError: If the directory does not exist.
    """
    if not manifests_dir.is_dir():
        raise RuntimeError(
            f"Manifests directory not found: {manifests_dir}. "
            "Set CRM_MANIFESTS_DIR to the directory holding namespace.yaml."
        )


def deploy_tier(tier: Tier, deploy_cfg: DeployConfig) -> list[StepResult]:
    """Apply one tier's manifests and wait for its pods.

    The database tier additionally runs its schema init job.

    Args:
        tier: Tier to deploy.
        deploy_cfg: Rollout configuration.

    Returns:
        Outcomes of the readiness waits for this tier.
    """
    console.print(f"[yellow]ℹ️  Deploying {tier.title} tier...[/yellow]")
    apply_manifest(deploy_cfg.manifests_dir / tier.manifest_dir)

    console.print(f"[yellow]ℹ️  Waiting for {tier.title} pods to be ready...[/yellow]")
    results = [_report(wait_for_tier(tier, deploy_cfg.tier_timeout))]

    if tier == TIER_DB:
        console.print("[yellow]ℹ️  Initializing database...[/yellow]")
        apply_manifest(deploy_cfg.manifests_dir / REL_DB_INIT_JOB)
        results.append(_report(wait_for_job(DB_INIT_JOB, deploy_cfg.db_init_timeout)))
    return results


def deploy_application(deploy_cfg: DeployConfig) -> list[StepResult]:
    """Apply namespace, database, application and web tiers in order.

    Readiness timeouts are recorded and the rollout moves on to the next
    tier; only kubectl apply errors stop it.

    Args:
        deploy_cfg: Rollout configuration.

    Returns:
        Outcomes of every readiness wait, in rollout order.
    """
    console.print(Panel.fit("Deploying CRM application", style="bold blue"))
    require_manifests(deploy_cfg.manifests_dir)

    apply_manifest(deploy_cfg.manifests_dir / REL_NAMESPACE_YAML)
    console.print("[yellow]ℹ️  Waiting for namespace to be ready...[/yellow]")
    results = [_report(wait_for_namespace(NS_CRM_APP, deploy_cfg.namespace_timeout))]

    for tier in ROLLOUT_ORDER:
        results.extend(deploy_tier(tier, deploy_cfg))

    console.print("[green]✅ Application deployed[/green]")
    return results


def apply_security_policies(deploy_cfg: DeployConfig) -> None:
    """Apply the CiliumNetworkPolicy manifest.

    Args:
        deploy_cfg: Rollout configuration with the manifests directory.
    """
    console.print(Panel.fit("Applying CiliumNetworkPolicy security policies", style="bold blue"))
    apply_manifest(deploy_cfg.manifests_dir / REL_POLICY_YAML)
    console.print("[green]✅ Security policies applied successfully[/green]")
