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

"""Configuration classes and config display."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from crm_lab import console
from crm_lab.constants import (
    DEFAULT_APP_IMAGE,
    DEFAULT_CILIUM_TIMEOUT,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_DB_INIT_TIMEOUT,
    DEFAULT_DEMO_READY_TIMEOUT,
    DEFAULT_DEMO_SETTLE_SECONDS,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MANIFESTS_DIR,
    DEFAULT_NAMESPACE_TIMEOUT,
    DEFAULT_NODE_TIMEOUT,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_TIER_TIMEOUT,
    DEFAULT_WORKER_NODES,
    NS_CRM_APP,
    dep_value,
)


# ============================================================================
# Configuration classes
# ============================================================================

class ClusterConfig(BaseSettings):
    """kind cluster configuration, auto-loaded from CRM_* env vars.

    Attributes:
        cluster_name: Name of the kind cluster.
        worker_nodes: Number of worker nodes next to the single control plane.
        app_image: Locally built CRM image loaded into the cluster nodes.
        node_image: kind node image override, or None for the kind default.
    """

    model_config = SettingsConfigDict(env_prefix="CRM_", extra="ignore")

    cluster_name: str = Field(default=DEFAULT_CLUSTER_NAME, pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
    worker_nodes: int = Field(default=DEFAULT_WORKER_NODES, ge=0, le=10)
    app_image: str = dep_value("crm_app", "image", default=DEFAULT_APP_IMAGE)
    node_image: str | None = None


class DeployConfig(BaseSettings):
    """Rollout settings, auto-loaded from CRM_* env vars.

    Attributes:
        manifests_dir: Directory holding the namespace, tier and policy manifests.
        cilium_version: Cilium Helm chart version.
        cilium_timeout: Seconds to wait for Cilium agent pods.
        tier_timeout: Seconds to wait for each application tier.
        db_init_timeout: Seconds to wait for the database init job.
        namespace_timeout: Seconds to wait for the namespace to become Active.
        node_timeout: Seconds to wait for nodes once the CNI is installed.
        probe_timeout: Seconds allowed for each in-pod connectivity probe.
    """

    model_config = SettingsConfigDict(env_prefix="CRM_", extra="ignore")

    manifests_dir: Path = DEFAULT_MANIFESTS_DIR
    cilium_version: str = Field(default=dep_value("cilium", "version", default="1.14.5"),
                                pattern=r"^\d+\.\d+\.\d+(-[\w.]+)?$")
    cilium_timeout: int = Field(default=DEFAULT_CILIUM_TIMEOUT, ge=1)
    tier_timeout: int = Field(default=DEFAULT_TIER_TIMEOUT, ge=1)
    db_init_timeout: int = Field(default=DEFAULT_DB_INIT_TIMEOUT, ge=1)
    namespace_timeout: int = Field(default=DEFAULT_NAMESPACE_TIMEOUT, ge=1)
    node_timeout: int = Field(default=DEFAULT_NODE_TIMEOUT, ge=1)
    probe_timeout: int = Field(default=DEFAULT_PROBE_TIMEOUT, ge=1)


class DemoConfig(BaseSettings):
    """Demo driver settings, auto-loaded from CRM_DEMO_* env vars.

    Attributes:
        ready_timeout: Seconds to wait for each tier in the readiness gate.
        settle_seconds: Delay after the gate before probing.
        probe_timeout: Seconds allowed for each in-pod probe.
        http_timeout: Seconds allowed for each API call of the smoke test.
    """

    model_config = SettingsConfigDict(env_prefix="CRM_DEMO_", extra="ignore")

    ready_timeout: int = Field(default=DEFAULT_DEMO_READY_TIMEOUT, ge=1)
    settle_seconds: float = Field(default=DEFAULT_DEMO_SETTLE_SECONDS, ge=0)
    probe_timeout: int = Field(default=DEFAULT_PROBE_TIMEOUT, ge=1)
    http_timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT, gt=0)


def display_config(cluster_cfg: ClusterConfig, deploy_cfg: DeployConfig) -> None:
    """Print the resolved deployment configuration.

    Args:
        cluster_cfg: kind cluster configuration.
        deploy_cfg: Rollout configuration.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))
    console.print("[yellow]kind cluster:[/yellow]")
    console.print(f"  cluster_name    : {cluster_cfg.cluster_name}")
    console.print(f"  worker_nodes    : {cluster_cfg.worker_nodes}")
    console.print(f"  app_image       : {cluster_cfg.app_image}")
    console.print(f"  node_image      : {cluster_cfg.node_image or '(kind default)'}")
    console.print("[yellow]Rollout:[/yellow]")
    console.print(f"  namespace       : {NS_CRM_APP}")
    console.print(f"  manifests_dir   : {deploy_cfg.manifests_dir}")
    console.print(f"  cilium_version  : {deploy_cfg.cilium_version}")
    console.print(f"  tier_timeout    : {deploy_cfg.tier_timeout}s")
