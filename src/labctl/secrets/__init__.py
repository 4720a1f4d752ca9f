"""Secret store access and the ephemeral secrets lifecycle."""

from labctl.secrets.manager import SecretsManager, initialize_secrets
from labctl.secrets.store import SecretStore
from labctl.secrets.template import (
    SecretKind,
    StoreReference,
    TemplateEntry,
    infer_kind,
    load_template,
    parse_template,
)

__all__ = [
    "SecretKind",
    "SecretStore",
    "SecretsManager",
    "StoreReference",
    "TemplateEntry",
    "infer_kind",
    "initialize_secrets",
    "load_template",
    "parse_template",
]
