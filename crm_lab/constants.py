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

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

# -- Resolved paths --
PACKAGE_DIR = Path(__file__).resolve().parent
REPO_ROOT = PACKAGE_DIR.parent
DEFAULT_MANIFESTS_DIR = REPO_ROOT / "manifests"


def load_dependencies() -> dict:
    """Load pinned chart versions and images from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = PACKAGE_DIR / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Required local tools and where to get them --
DEPLOY_PREREQUISITES = ("kind", "kubectl", "helm")
DEMO_PREREQUISITES = ("kubectl",)
INSTALL_HINTS = {
    "kind": "https://kind.sigs.k8s.io/docs/user/quick-start/#installation",
    "kubectl": "https://kubernetes.io/docs/tasks/tools/",
    "helm": "https://helm.sh/docs/intro/install/",
}

# -- Namespaces --
NS_CRM_APP = "crm-app"
NS_KUBE_SYSTEM = "kube-system"

# -- Cilium --
CILIUM_REPO_NAME = dep_value("cilium", "repo_name", default="cilium")
CILIUM_REPO_URL = dep_value("cilium", "repo_url", default="https://helm.cilium.io/")
CILIUM_CHART = dep_value("cilium", "chart", default="cilium/cilium")
HELM_RELEASE_CILIUM = dep_value("cilium", "release", default="cilium")
CILIUM_POD_LABEL = "k8s-app=cilium"
CILIUM_HELM_VALUES = (
    "ipam.mode=kubernetes",
    "hubble.relay.enabled=true",
    "hubble.ui.enabled=true",
)
HUBBLE_UI_SERVICE = "svc/hubble-ui"
HUBBLE_UI_PORT_MAPPING = "12000:80"

# -- Services exposed by the CRM manifests --
SVC_WEB = "crm-web-service"
SVC_APP = "crm-app-service"
SVC_DB = "postgres-service"
APP_PORT = 5000
DB_PORT = 5432
WEB_PORT_FORWARD = "8080:80"

APP_HEALTH_URL = f"http://{SVC_APP}.{NS_CRM_APP}.svc.cluster.local:{APP_PORT}/health"
DB_HOST = f"{SVC_DB}.{NS_CRM_APP}.svc.cluster.local"

# Demo credentials baked into the database manifests.
DB_USER = "crmuser"
DB_PASSWORD = "crmpass123"
DB_NAME = "crmdb"

# -- Database initialisation --
DB_INIT_JOB = "postgres-init"
REL_DB_INIT_JOB = "db/init-db-job.yaml"

# -- Manifests (relative to the manifests directory) --
REL_NAMESPACE_YAML = "namespace.yaml"
REL_POLICY_YAML = "security/cilium-network-policies.yaml"

# -- API used by the functional smoke test --
API_CUSTOMERS_PATH = "/api/customers"
DEMO_CUSTOMER = {"name": "Demo User", "email": "demo@example.com"}


@dataclass(frozen=True)
class Tier:
    """One layer of the CRM application.

    Attributes:
        key: Short identifier (``web``, ``app`` or ``db``).
        title: Human readable name used in console output.
        app_label: Value of the ``app`` pod label set by the manifests.
        manifest_dir: Manifest subdirectory relative to the manifests directory.
    """

    key: str
    title: str
    app_label: str
    manifest_dir: str

    @property
    def selector(self) -> str:
        return f"app={self.app_label}"


TIER_DB = Tier("db", "database", "crm-db", "db")
TIER_APP = Tier("app", "application", "crm-app", "app")
TIER_WEB = Tier("web", "web", "crm-web", "web")

# Rollout order: each tier depends on the one before it.
ROLLOUT_ORDER = (TIER_DB, TIER_APP, TIER_WEB)
# Demo readiness gate order.
DEMO_GATE_ORDER = (TIER_WEB, TIER_APP, TIER_DB)

# -- kind cluster defaults --
DEFAULT_CLUSTER_NAME = "cilium-crm-cluster"
DEFAULT_WORKER_NODES = 2
DEFAULT_APP_IMAGE = "crm-app:1.0"
KIND_API_VERSION = "kind.x-k8s.io/v1alpha4"

# -- Timeouts (seconds) --
DEFAULT_CILIUM_TIMEOUT = 300
DEFAULT_TIER_TIMEOUT = 300
DEFAULT_DB_INIT_TIMEOUT = 120
DEFAULT_NAMESPACE_TIMEOUT = 30
DEFAULT_NODE_TIMEOUT = 300
DEFAULT_PROBE_TIMEOUT = 30
DEFAULT_DEMO_READY_TIMEOUT = 60
DEFAULT_DEMO_SETTLE_SECONDS = 3
DEFAULT_HTTP_TIMEOUT = 10.0

POD_SCHEDULE_POLL_INTERVAL_SECONDS = 2
# Extra seconds granted to the kubectl process beyond its own --timeout.
KUBECTL_TIMEOUT_GRACE_SECONDS = 10
