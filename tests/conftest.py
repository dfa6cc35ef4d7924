"""
Shared pytest fixtures for the crm_lab tests.

This module provides:
- KubectlMocker: intercepts the subprocess.run calls made by run_kubectl and
  answers them with pattern-matched canned responses
- fake_sh: a MagicMock standing in for the sh module (kind, helm and the
  fail-fast kubectl calls)
- manifests_dir: a throwaway manifests tree
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Pattern, Union
from unittest.mock import MagicMock

import pytest
import sh


# =============================================================================
# Kubectl Mocking Infrastructure
# =============================================================================

@dataclass
class KubectlResponse:
    """Represents a mocked kubectl command response."""
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0

    def to_completed_process(self, args: List[str]) -> subprocess.CompletedProcess:
        return subprocess.CompletedProcess(args, self.returncode, self.stdout, self.stderr)


@dataclass
class KubectlCall:
    """Record of a kubectl call made during testing."""
    command: List[str]
    full_command_str: str
    matched_pattern: Optional[str] = None
    response: Optional[KubectlResponse] = None


class KubectlMocker:
    """
    Mock kubectl subprocess calls with pattern-matched responses.

    Patterns are matched against the kubectl arguments joined by spaces,
    in registration order; a plain string matches as a substring.

    Usage:
        def test_web_pod_lookup(kubectl):
            kubectl.register("get pod -n crm-app -l app=crm-web", KubectlResponse(stdout="web-0"))
            assert find_pod("app=crm-web") == "web-0"
            assert kubectl.was_called_with("app=crm-web")
    """

    def __init__(self):
        self._responses: List[tuple[Union[str, Pattern], KubectlResponse]] = []
        self.calls: List[KubectlCall] = []
        self.default_response = KubectlResponse(
            stderr="Error: mock not configured for this command",
            returncode=1,
        )

    def register(self, pattern: Union[str, Pattern], response: KubectlResponse) -> None:
        self._responses.append((pattern, response))

    def _match(self, command_str: str) -> tuple[Optional[str], KubectlResponse]:
        for pattern, response in self._responses:
            if isinstance(pattern, str):
                if pattern in command_str:
                    return pattern, response
            elif pattern.search(command_str):
                return pattern.pattern, response
        return None, self.default_response

    def __call__(self, cmd, **kwargs):
        args = list(cmd[1:])
        command_str = " ".join(args)
        matched, response = self._match(command_str)
        self.calls.append(KubectlCall(args, command_str, matched, response))
        return response.to_completed_process(list(cmd))

    def was_called_with(self, fragment: str) -> bool:
        return any(fragment in call.full_command_str for call in self.calls)

    def verbs(self) -> List[str]:
        return [call.command[0] for call in self.calls if call.command]


@pytest.fixture
def kubectl(monkeypatch):
    """Route run_kubectl through a KubectlMocker."""
    mocker = KubectlMocker()
    monkeypatch.setattr("crm_lab.utils.subprocess.run", mocker)
    return mocker


# =============================================================================
# sh module mock
# =============================================================================

SH_USERS = (
    "crm_lab.utils",
    "crm_lab.cluster",
    "crm_lab.components",
    "crm_lab.verify",
)


@pytest.fixture
def fake_sh(monkeypatch):
    """Replace the sh module in every crm_lab module that shells out."""
    fake = MagicMock(name="sh")
    fake.ErrorReturnCode = sh.ErrorReturnCode
    fake.ErrorReturnCode_1 = sh.ErrorReturnCode_1
    fake.which.side_effect = lambda cmd: f"/usr/local/bin/{cmd}"
    fake.kind.return_value = ""
    fake.helm.return_value = ""
    fake.kubectl.return_value = ""
    for module in SH_USERS:
        monkeypatch.setattr(f"{module}.sh", fake)
    return fake


def sh_error(cmd: str, stderr: str = "") -> sh.ErrorReturnCode:
    """Build the exception sh raises for a command exiting with status 1."""
    return sh.ErrorReturnCode_1(cmd, b"", stderr.encode())


def sh_calls(mock: MagicMock) -> List[tuple]:
    return [call.args for call in mock.call_args_list]


# =============================================================================
# Filesystem fixtures
# =============================================================================

@pytest.fixture
def manifests_dir(tmp_path: Path) -> Path:
    root = tmp_path / "manifests"
    for sub in ("db", "app", "web", "security"):
        (root / sub).mkdir(parents=True)
    (root / "namespace.yaml").write_text("kind: Namespace\n")
    (root / "db" / "init-db-job.yaml").write_text("kind: Job\n")
    (root / "security" / "cilium-network-policies.yaml").write_text("kind: CiliumNetworkPolicy\n")
    return root


@dataclass
class ClusterState:
    """Minimal stand-in for kind's view of clusters on the host."""
    clusters: List[str] = field(default_factory=list)


@pytest.fixture
def kind_state(fake_sh) -> ClusterState:
    """Make fake ``kind get/create/delete cluster`` calls share one state."""
    state = ClusterState()

    def _kind(*args, **kwargs):
        if args[:2] == ("get", "clusters"):
            return "\n".join(state.clusters) + ("\n" if state.clusters else "")
        if args[:2] == ("create", "cluster"):
            state.clusters.append(args[args.index("--name") + 1])
        elif args[:2] == ("delete", "cluster"):
            name = args[args.index("--name") + 1]
            if name in state.clusters:
                state.clusters.remove(name)
        return ""

    fake_sh.kind.side_effect = _kind
    return state


@pytest.fixture
def ready_pods(kubectl):
    """Answer pod lookups and readiness waits for all three tiers."""
    for label in ("crm-web", "crm-app", "crm-db"):
        kubectl.register(
            re.compile(rf"^get pods -n crm-app -l app={label} -o name$"),
            KubectlResponse(stdout=f"pod/{label}-0\n"),
        )
        kubectl.register(
            re.compile(rf"^get pod -n crm-app -l app={label} -o jsonpath"),
            KubectlResponse(stdout=f"{label}-0"),
        )
    kubectl.register(re.compile(r"^wait "), KubectlResponse(stdout="condition met\n"))
    return kubectl
