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

"""Demo driver: ``crm-demo``."""

from __future__ import annotations

import sys

import typer

from crm_lab import configure_logging, console
from crm_lab.config import DemoConfig
from crm_lab.orchestrator import run_demo

app = typer.Typer(
    help="Demonstrate Cilium network policy enforcement on the deployed CRM.",
    add_completion=False,
)


@app.command()
def main(
    strict: bool = typer.Option(
        False, "--strict", help="Exit non-zero if any check did not match the expected policy"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every executed command"),
) -> None:
    """Run the allowed, blocked, observability and functional demo phases."""
    configure_logging(verbose)
    report = run_demo(DemoConfig())
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
