"""Platform-specific Azure CLI install instructions."""

from __future__ import annotations

import sys
from typing import Optional

from feedauth.output import error, info

DOCS_URL = "https://docs.microsoft.com/cli/azure/install-azure-cli"

_INSTRUCTIONS = {
    "win32": (
        "Download this link to install on Windows",
        "https://aka.ms/installazurecliwindows",
    ),
    "darwin": (
        "Run this script to install Azure CLI on macOS",
        "brew update && brew install azure-cli",
    ),
}
_LINUX = (
    "Run this script to install Azure CLI on Linux",
    "curl -L https://aka.ms/InstallAzureCli | bash",
)


def install_instructions(platform: Optional[str] = None) -> tuple[str, str]:
    """Return ``(headline, command_or_link)`` for *platform* (default: this one)."""
    return _INSTRUCTIONS.get(platform or sys.platform, _LINUX)


def show_install_message(cli_command: str = "az", platform: Optional[str] = None) -> None:
    """Tell the operator how to install the Azure CLI."""
    headline, action = install_instructions(platform)
    error(f"Command `{cli_command}` not found. Please install Azure CLI first!")
    info(headline)
    info(action)
    info(f"(How to install the Azure CLI: {DOCS_URL})")
