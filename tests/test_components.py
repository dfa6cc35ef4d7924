"""Tests for the Cilium install and the tiered application rollout."""

import re
from pathlib import Path

import pytest
import sh

from conftest import KubectlResponse, sh_calls, sh_error

from crm_lab import components
from crm_lab.config import DeployConfig
from crm_lab.constants import TIER_APP, TIER_DB, TIER_WEB
from crm_lab.results import StepStatus


@pytest.fixture
def deploy_cfg(manifests_dir):
    return DeployConfig(manifests_dir=manifests_dir)


def _applied(fake_sh, manifests_dir):
    return [
        str(Path(args[2]).relative_to(manifests_dir))
        for args in sh_calls(fake_sh.kubectl)
        if args[:2] == ("apply", "-f")
    ]


def test_install_cilium_helm_invocation(fake_sh, deploy_cfg):
    components.install_cilium(deploy_cfg)

    helm_calls = sh_calls(fake_sh.helm)
    assert helm_calls[0] == ("repo", "add", "cilium", "https://helm.cilium.io/", "--force-update")
    assert helm_calls[1] == ("repo", "update", "cilium")
    install = helm_calls[2]
    assert install[:4] == ("upgrade", "--install", "cilium", "cilium/cilium")
    assert install[install.index("--version") + 1] == "1.14.5"
    assert install[install.index("--namespace") + 1] == "kube-system"
    for value in ("ipam.mode=kubernetes", "hubble.relay.enabled=true", "hubble.ui.enabled=true"):
        assert value in install
    assert install[-1] == "--wait"

    fake_sh.kubectl.assert_called_once_with(
        "wait", "--for=condition=ready", "pod",
        "-l", "k8s-app=cilium", "-n", "kube-system",
        "--timeout=300s",
    )


def test_install_cilium_readiness_failure_is_fatal(fake_sh, deploy_cfg):
    fake_sh.kubectl.side_effect = sh_error("kubectl wait", "timed out")

    with pytest.raises(sh.ErrorReturnCode):
        components.install_cilium(deploy_cfg)


def test_wait_for_tier_ready(ready_pods):
    result = components.wait_for_tier(TIER_APP, 30)

    assert result.status is StepStatus.OK
    assert ready_pods.was_called_with("wait --for=condition=ready pod -l app=crm-app -n crm-app")


def test_wait_for_tier_without_pods_times_out(kubectl):
    kubectl.register("get pods", KubectlResponse(stdout=""))

    result = components.wait_for_tier(TIER_WEB, 0)

    assert result.status is StepStatus.TIMED_OUT
    assert "app=crm-web" in result.detail
    assert "wait" not in kubectl.verbs()


def test_wait_for_tier_readiness_timeout(kubectl):
    kubectl.register("get pods", KubectlResponse(stdout="pod/crm-db-0\n"))
    kubectl.register("wait", KubectlResponse(returncode=1, stderr="timed out waiting for the condition"))

    result = components.wait_for_tier(TIER_DB, 5)

    assert result.status is StepStatus.TIMED_OUT
    assert "timed out" in result.detail


def test_deploy_application_order(fake_sh, ready_pods, deploy_cfg, manifests_dir):
    results = components.deploy_application(deploy_cfg)

    assert _applied(fake_sh, manifests_dir) == [
        "namespace.yaml",
        "db",
        "db/init-db-job.yaml",
        "app",
        "web",
    ]
    assert [r.name for r in results] == [
        "namespace crm-app active",
        "database pods ready",
        "job postgres-init complete",
        "application pods ready",
        "web pods ready",
    ]
    assert all(r.ok for r in results)


def test_deploy_application_waits_for_each_tier_before_next(fake_sh, ready_pods, deploy_cfg, monkeypatch):
    order = []

    def _apply(*args, **kwargs):
        order.append(("apply", args[2]))
        return ""

    def _run(cmd, **kwargs):
        if cmd[1] == "wait":
            order.append(("wait", " ".join(cmd[1:])))
        return ready_pods(cmd, **kwargs)

    fake_sh.kubectl.side_effect = _apply
    monkeypatch.setattr("crm_lab.utils.subprocess.run", _run)

    components.deploy_application(deploy_cfg)

    # each apply after the namespace waits on the step before it
    assert [entry[0] for entry in order] == ["apply", "wait"] * 5
    assert "namespace/crm-app" in order[1][1]
    assert "app=crm-db" in order[3][1]
    assert "job/postgres-init" in order[5][1]
    assert "app=crm-app" in order[7][1]
    assert "app=crm-web" in order[9][1]


def test_deploy_application_continues_after_timeouts(fake_sh, kubectl, deploy_cfg, manifests_dir):
    kubectl.register("get pods", KubectlResponse(stdout="pod/x\n"))
    kubectl.register(re.compile(r"^wait "), KubectlResponse(returncode=1, stderr="timed out"))

    results = components.deploy_application(deploy_cfg)

    assert _applied(fake_sh, manifests_dir)[-1] == "web"
    assert {r.status for r in results} == {StepStatus.TIMED_OUT}


def test_deploy_application_apply_error_is_fatal(fake_sh, ready_pods, deploy_cfg):
    fake_sh.kubectl.side_effect = sh_error("kubectl apply", "error validating data")

    with pytest.raises(sh.ErrorReturnCode):
        components.deploy_application(deploy_cfg)


def test_deploy_application_missing_manifests(fake_sh, tmp_path):
    cfg = DeployConfig(manifests_dir=tmp_path / "nope")

    with pytest.raises(RuntimeError, match="Manifests directory not found"):
        components.deploy_application(cfg)

    fake_sh.kubectl.assert_not_called()


def test_apply_security_policies(fake_sh, deploy_cfg, manifests_dir):
    components.apply_security_policies(deploy_cfg)

    assert _applied(fake_sh, manifests_dir) == ["security/cilium-network-policies.yaml"]


def test_missing_manifests_error_names_env_variable(tmp_path):
    with pytest.raises(RuntimeError, match="CRM_MANIFESTS_DIR"):
        components.require_manifests(tmp_path / "site-packages" / "manifests")
