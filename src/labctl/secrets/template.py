"""Secret reference template parsing.

A template line looks like::

    TF_VAR_proxmox_api_token="op://lab/proxmox/api-token"

Comments start with ``#``; blank lines and lines that do not match are
ignored.
"""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from labctl.core.errors import ConfigurationError, ParseError

SCHEME = "op://"
VAULT_PLACEHOLDER = "VAULT"

_LINE = re.compile(r'^([A-Z][A-Za-z0-9_]*)="(op://[^"]+)"$')


class SecretKind(StrEnum):
    """Every kind of secret labctl knows how to validate and rotate."""

    PROXMOX_API_TOKEN = "proxmox-api-token"
    SSH_PUBLIC_KEY = "ssh-public-key"
    SSH_PRIVATE_KEY = "ssh-private-key"
    TAILSCALE_AUTH_KEY = "tailscale-auth-key"
    TAILSCALE_API_TOKEN = "tailscale-api-token"
    PASSWORD = "password"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> SecretKind:
        """Kind named by value, UNKNOWN for anything unrecognized."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


# Checked in order against the field name; first match wins
_FIELD_MARKERS = (
    ("api-token", SecretKind.PROXMOX_API_TOKEN),
    ("public-key", SecretKind.SSH_PUBLIC_KEY),
    ("private-key", SecretKind.SSH_PRIVATE_KEY),
    ("auth-key", SecretKind.TAILSCALE_AUTH_KEY),
    ("password", SecretKind.PASSWORD),
)


class StoreReference(BaseModel):
    """op://vault/item[/section]/field split into parts."""

    model_config = ConfigDict(frozen=True)

    vault: str
    item: str
    field: str
    section: str | None = None

    @classmethod
    def parse(cls, reference: str) -> StoreReference:
        """Split a reference.

        Raises:
            ParseError: Wrong scheme, fewer than three segments, or an
                empty segment
        """
        if not reference.startswith(SCHEME):
            raise ParseError(f"Not an {SCHEME} reference: {reference}")
        parts = reference[len(SCHEME):].split("/")
        if len(parts) < 3 or not all(parts):
            raise ParseError(
                f"Reference needs vault/item/field: {reference}"
            )
        return cls(
            vault=parts[0],
            item=parts[1],
            field=parts[-1],
            section="/".join(parts[2:-1]) or None,
        )

    @property
    def assignment_field(self) -> str:
        """Field name as written in ``op item edit`` assignments."""
        if self.section:
            return f"{self.section}.{self.field}"
        return self.field

    def __str__(self) -> str:
        middle = f"{self.section}/" if self.section else ""
        return f"{SCHEME}{self.vault}/{self.item}/{middle}{self.field}"


def field_of(reference: str) -> str:
    return reference.rstrip("/").rsplit("/", 1)[-1]


def infer_kind(reference: str) -> SecretKind:
    """Kind of a secret, inferred from its field name."""
    name = field_of(reference)
    for marker, kind in _FIELD_MARKERS:
        if marker in name:
            return kind
    return SecretKind.UNKNOWN


def substitute_vault(reference: str, vault: str) -> str:
    """Replace a ``//VAULT/`` placeholder with the active vault."""
    return reference.replace(
        f"//{VAULT_PLACEHOLDER}/", f"//{vault}/", 1
    )


class TemplateEntry(BaseModel):
    """One significant line of the template."""

    model_config = ConfigDict(frozen=True)

    name: str
    reference: str
    kind: SecretKind
    line_number: int

    @property
    def is_valid(self) -> bool:
        try:
            StoreReference.parse(self.reference)
        except ParseError:
            return False
        return True

    def store_reference(self) -> StoreReference:
        return StoreReference.parse(self.reference)


def parse_template(text: str) -> list[TemplateEntry]:
    """Entries in file order. Malformed lines are skipped."""
    entries = []
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = _LINE.match(line)
        if not match:
            continue
        name, reference = match.groups()
        entries.append(
            TemplateEntry(
                name=name,
                reference=reference,
                kind=infer_kind(reference),
                line_number=number,
            )
        )
    return entries


def load_template(path: Path) -> list[TemplateEntry]:
    """Read and parse a template file.

    Raises:
        ConfigurationError: The file does not exist
    """
    if not path.is_file():
        raise ConfigurationError(f"Secrets template not found: {path}")
    return parse_template(path.read_text(encoding="utf-8"))


def invalid_entries(entries: list[TemplateEntry]) -> list[TemplateEntry]:
    """Entries whose reference lacks vault/item/field."""
    return [entry for entry in entries if not entry.is_valid]


def render_template(entries: list[TemplateEntry]) -> str:
    """Template text for entries; parse_template reads it back unchanged."""
    return "".join(f'{e.name}="{e.reference}"\n' for e in entries)
