"""Subcommands exposed by the CLI."""

from labctl.command.init import InitCommand
from labctl.command.preflight import PreflightCommand
from labctl.command.rotate import RotateCommand
from labctl.command.tailscale import TailscaleUpCommand
from labctl.command.up import UpCommand
from labctl.command.vaults import VaultsCommand

__all__ = [
    "InitCommand",
    "PreflightCommand",
    "RotateCommand",
    "TailscaleUpCommand",
    "UpCommand",
    "VaultsCommand",
]
