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

"""kind cluster lifecycle, application image loading, and node readiness."""

from __future__ import annotations

import docker
import sh
import yaml
from rich.panel import Panel

from crm_lab import console, logger
from crm_lab.config import ClusterConfig
from crm_lab.constants import KIND_API_VERSION
from crm_lab.results import StepResult, StepStatus
from crm_lab.utils import confirm, kubectl_wait


def kind_config(cluster_cfg: ClusterConfig) -> dict:
    """Build the kind cluster topology.

    One control-plane node plus ``worker_nodes`` workers, with the default CNI
    disabled so Cilium can be installed instead.

    Args:
        cluster_cfg: kind cluster configuration.

    Returns:
        kind ``Cluster`` resource as a dictionary ready for YAML serialization.
    """
    node: dict = {}
    if cluster_cfg.node_image:
        node["image"] = cluster_cfg.node_image
    nodes = [{"role": "control-plane", **node}]
    nodes += [{"role": "worker", **node} for _ in range(cluster_cfg.worker_nodes)]
    return {
        "kind": "Cluster",
        "apiVersion": KIND_API_VERSION,
        "networking": {"disableDefaultCNI": True},
        "nodes": nodes,
    }


def list_clusters() -> list[str]:
    """Return the names of all kind clusters on this host."""
    output = str(sh.kind("get", "clusters"))
    return [line.strip() for line in output.splitlines() if line.strip()]


def cluster_exists(cluster_name: str) -> bool:
    return cluster_name in list_clusters()


def delete_cluster(cluster_cfg: ClusterConfig) -> None:
    """Delete the kind cluster.

    Args:
        cluster_cfg: kind cluster configuration with the cluster name.
    """
    console.print(f"[yellow]ℹ️  Deleting kind cluster '{cluster_cfg.cluster_name}'...[/yellow]")
    try:
        sh.kind("delete", "cluster", "--name", cluster_cfg.cluster_name)
        console.print(f"[green]✅ Cluster '{cluster_cfg.cluster_name}' deleted[/green]")
    except sh.ErrorReturnCode_1:
        console.print(f"[yellow]⚠️  Cluster '{cluster_cfg.cluster_name}' not found or already deleted[/yellow]")


def create_cluster(cluster_cfg: ClusterConfig, assume_yes: bool = False) -> bool:
    """Create the kind cluster, or reuse an existing one.

    If a cluster with the same name exists the user chooses between deleting
    and recreating it or reusing it as-is.

    Args:
        cluster_cfg: kind cluster configuration.
        assume_yes: Recreate an existing cluster without prompting.

    Returns:
        True if a new cluster was created, False if an existing one is reused.
    """
    console.print(Panel.fit(f"Creating kind cluster: {cluster_cfg.cluster_name}", style="bold blue"))

    if cluster_exists(cluster_cfg.cluster_name):
        console.print(f"[yellow]⚠️  Cluster {cluster_cfg.cluster_name} already exists[/yellow]")
        if not confirm("Delete and recreate?", assume_yes=assume_yes):
            console.print("[yellow]ℹ️  Using existing cluster[/yellow]")
            return False
        delete_cluster(cluster_cfg)

    config_yaml = yaml.safe_dump(kind_config(cluster_cfg), default_flow_style=False, sort_keys=False)
    logger.debug("kind config:\n%s", config_yaml)
    sh.kind("create", "cluster", "--name", cluster_cfg.cluster_name, "--config=-", _in=config_yaml)
    console.print("[green]✅ Cluster created successfully[/green]")
    return True


def _ensure_local_image(image: str) -> None:
    """Fail early if the application image has not been built locally.

    Args:
        image: Image reference (e.g. ``crm-app:1.0``).

    Raises:
        RuntimeError: If Docker reports the image does not exist.
    """
    try:
        docker_client = docker.from_env()
    except docker.errors.DockerException as e:
        console.print(f"[yellow]⚠️  Failed to connect to Docker: {e}[/yellow]")
        console.print("[yellow]⚠️  Skipping local image check, kind will report a missing image[/yellow]")
        return

    try:
        docker_client.images.get(image)
    except docker.errors.ImageNotFound as err:
        raise RuntimeError(f"Image '{image}' not found locally. Build it before deploying.") from err
    finally:
        docker_client.close()


def load_app_image(cluster_cfg: ClusterConfig) -> None:
    """Load the pre-built application image into every cluster node.

    Args:
        cluster_cfg: kind cluster configuration with image and cluster name.

    Raises:
        RuntimeError: If the image is missing from the local Docker daemon.
    """
    console.print(f"[yellow]ℹ️  Loading application image {cluster_cfg.app_image} into kind...[/yellow]")
    _ensure_local_image(cluster_cfg.app_image)
    sh.kind("load", "docker-image", cluster_cfg.app_image, "--name", cluster_cfg.cluster_name)
    console.print("[green]✅ Application image loaded[/green]")


def wait_for_nodes(timeout: int) -> StepResult:
    """Wait for all nodes to be ready.

    Nodes only turn Ready once a CNI is running, so this is called after the
    Cilium install.

    Args:
        timeout: Seconds to wait.

    Returns:
        Outcome of the wait.
    """
    console.print("[yellow]ℹ️  Waiting for all nodes to be ready...[/yellow]")
    ok, _, stderr = kubectl_wait(["--for=condition=Ready", "nodes", "--all"], timeout)
    if ok:
        console.print("[green]✅ All nodes are ready[/green]")
        return StepResult("nodes ready", StepStatus.OK)
    console.print(f"[yellow]⚠️  Nodes not ready after {timeout}s, continuing[/yellow]")
    return StepResult("nodes ready", StepStatus.TIMED_OUT, stderr.strip()[:200])
