"""labctl - home lab provisioning checks and ephemeral secrets."""

__version__ = "0.1.0"
