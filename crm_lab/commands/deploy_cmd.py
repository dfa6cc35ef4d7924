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

"""Deployment driver: ``crm-deploy [deploy|verify|cleanup|help]``."""

from __future__ import annotations

import sys

import typer

from crm_lab import configure_logging, console
from crm_lab.config import ClusterConfig, DeployConfig, display_config
from crm_lab.orchestrator import run_cleanup, run_deploy, run_verify

COMMANDS = ("deploy", "verify", "cleanup", "help")

USAGE = """\
Usage: crm-deploy [COMMAND] [OPTIONS]

Commands:
    deploy      Create cluster, install Cilium, deploy app, and apply policies (default)
    verify      Verify the deployment status
    cleanup     Delete the cluster and all resources
    help        Show this help message

Examples:
    crm-deploy              # Deploy everything
    crm-deploy deploy       # Same as above
    crm-deploy verify       # Check deployment status
    crm-deploy cleanup      # Remove everything
"""

app = typer.Typer(
    help="Deploy the Cilium CRM demo onto a local kind cluster.",
    add_completion=False,
    context_settings={"help_option_names": []},
)


def show_help() -> None:
    console.out(USAGE, highlight=False)


def _help_callback(value: bool) -> None:
    if value:
        show_help()
        raise typer.Exit()


@app.command()
def main(
    command: str = typer.Argument(
        "deploy", help="deploy | verify | cleanup | help", show_default=True),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Answer yes to recreate and cleanup prompts"),
    strict: bool = typer.Option(
        False, "--strict", help="Exit non-zero if any readiness wait or probe failed"),
    workers: int | None = typer.Option(
        None, "--workers", help="kind worker nodes (overrides CRM_WORKER_NODES)"),
    cluster_name: str | None = typer.Option(
        None, "--cluster-name", help="kind cluster name (overrides CRM_CLUSTER_NAME)"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every executed command"),
    _help: bool = typer.Option(
        False, "--help", "-h", is_eager=True, expose_value=False,
        callback=_help_callback, help="Show this help message"),
) -> None:
    """Deploy, verify or remove the Cilium CRM demo cluster."""
    configure_logging(verbose)

    if command not in COMMANDS:
        console.print(f"[red]❌ Unknown command: {command}[/red]")
        show_help()
        raise typer.Exit(1)
    if command == "help":
        show_help()
        return

    cluster_cfg = ClusterConfig()
    overrides: dict = {}
    if workers is not None:
        overrides["worker_nodes"] = workers
    if cluster_name is not None:
        overrides["cluster_name"] = cluster_name
    if overrides:
        cluster_cfg = ClusterConfig.model_validate({**cluster_cfg.model_dump(), **overrides})

    if command == "cleanup":
        run_cleanup(cluster_cfg, assume_yes=yes)
        return

    deploy_cfg = DeployConfig()
    if command == "deploy":
        display_config(cluster_cfg, deploy_cfg)
        report = run_deploy(cluster_cfg, deploy_cfg, assume_yes=yes)
    else:
        report = run_verify(deploy_cfg)

    if strict and report.has_problems:
        raise typer.Exit(1)


def run() -> None:
    """Console script entry point."""
    try:
        app()
    except Exception as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    run()
