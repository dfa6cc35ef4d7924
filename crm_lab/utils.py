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

"""Utility functions for kubectl, prerequisite checks, and prompts."""

from __future__ import annotations

import subprocess
from collections.abc import Iterable

import sh
import typer

from crm_lab import console, logger
from crm_lab.constants import INSTALL_HINTS, KUBECTL_TIMEOUT_GRACE_SECONDS, NS_CRM_APP


def find_missing_commands(commands: Iterable[str]) -> list[str]:
    """Return the subset of *commands* that is not on the system PATH.

    Args:
        commands: Names of the CLI commands to check.

    Returns:
        Missing command names in the order they were given.
    """
    missing: list[str] = []
    for cmd in commands:
        try:
            found = sh.which(cmd)
        except sh.ErrorReturnCode:
            found = None
        if not found:
            missing.append(cmd)
    return missing


def require_commands(commands: Iterable[str]) -> None:
    """Check that every required command exists, reporting all missing ones.

    Args:
        commands: Names of the CLI commands to check.

    Raises:
        RuntimeError: If one or more commands are not found.
    """
    missing = find_missing_commands(commands)
    if not missing:
        return
    console.print(f"[red]❌ Missing required tools: {' '.join(missing)}[/red]")
    console.print("[yellow]ℹ️  Please install:[/yellow]")
    for cmd in missing:
        hint = INSTALL_HINTS.get(cmd)
        console.print(f"  - {cmd}: {hint}" if hint else f"  - {cmd}")
    raise RuntimeError(f"Missing required tools: {', '.join(missing)}")


def run_kubectl(args: list[str], timeout: int = 30) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Used for every call whose failure is reported rather than fatal (readiness
    waits, probes, lookups), so a non-zero exit never raises.

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "crm-app"]``).
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    logger.debug("kubectl %s", " ".join(args))
    try:
        result = subprocess.run(
            ["kubectl", *args],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def kubectl_wait(args: list[str], timeout: int) -> tuple[bool, str, str]:
    """Run ``kubectl wait`` with a server-side timeout.

    Args:
        args: Condition and resource arguments for ``kubectl wait``.
        timeout: Seconds passed to ``--timeout``.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    return run_kubectl(
        ["wait", *args, f"--timeout={timeout}s"],
        timeout=timeout + KUBECTL_TIMEOUT_GRACE_SECONDS,
    )


def find_pod(selector: str, namespace: str = NS_CRM_APP) -> str | None:
    """Return the name of the first pod matching *selector*, if any.

    Args:
        selector: Label selector (e.g. ``app=crm-web``).
        namespace: Namespace to search.

    Returns:
        Pod name, or None when no pod matches or the lookup fails.
    """
    ok, stdout, _ = run_kubectl([
        "get", "pod", "-n", namespace, "-l", selector,
        "-o", "jsonpath={.items[0].metadata.name}",
    ])
    name = stdout.strip()
    return name if ok and name else None


def discover_entry_point(service: str, namespace: str = NS_CRM_APP) -> str | None:
    """Return the load-balancer IP or hostname assigned to *service*.

    Args:
        service: Service name.
        namespace: Service namespace.

    Returns:
        IP address or hostname, or None if none is assigned yet.
    """
    for field_name in ("ip", "hostname"):
        ok, stdout, _ = run_kubectl([
            "get", "svc", service, "-n", namespace,
            "-o", f"jsonpath={{.status.loadBalancer.ingress[0].{field_name}}}",
        ])
        if ok and stdout.strip():
            return stdout.strip()
    return None


def confirm(prompt: str, assume_yes: bool = False) -> bool:
    """Ask a yes/no question that defaults to no.

    Args:
        prompt: Question to display.
        assume_yes: Answer yes without prompting.

    Returns:
        True only for an explicit affirmative answer. End of input counts as no.
    """
    if assume_yes:
        return True
    try:
        return typer.confirm(prompt, default=False)
    except (typer.Abort, EOFError):
        console.print()
        return False


def print_tool_output(output: str) -> None:
    """Write raw tool output without interpreting rich markup."""
    text = str(output).rstrip()
    if text:
        console.out(text, highlight=False)
