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

"""crm_lab - Cilium CRM demo cluster deployment and policy demonstration."""

from __future__ import annotations

import logging

from rich.console import Console

console = Console(stderr=True)
logger = logging.getLogger("crm_lab")


def configure_logging(verbose: bool = False) -> None:
    """Initialize logging for the command-line drivers.

    Args:
        verbose: Log executed commands at DEBUG level when True.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
