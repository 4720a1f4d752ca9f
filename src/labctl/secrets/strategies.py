"""Per-kind format validation, instructions and rotation strategies.

Every table here is keyed by SecretKind. UNKNOWN has a validator that
accepts anything and no rotation strategy.
"""

from __future__ import annotations

import re
import secrets
import string
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, Field

from labctl.core.errors import ExecutionError, ParseError, SecretsError
from labctl.core.exec import execute
from labctl.core.log import logger
from labctl.secrets.store import SecretStore
from labctl.secrets.template import SecretKind, TemplateEntry

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"
PASSWORD_LENGTH = 32

_PROXMOX_TOKEN = re.compile(
    r"^[A-Za-z0-9-]+="
    r"[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}$"
)

FORMAT_VALIDATORS: dict[SecretKind, Callable[[str], bool]] = {
    SecretKind.SSH_PUBLIC_KEY: lambda v: (
        v.startswith("ssh-") or "BEGIN PUBLIC KEY" in v
    ),
    SecretKind.SSH_PRIVATE_KEY: lambda v: (
        "BEGIN PRIVATE KEY" in v or "BEGIN OPENSSH PRIVATE KEY" in v
    ),
    SecretKind.PROXMOX_API_TOKEN: lambda v: bool(
        _PROXMOX_TOKEN.match(v.strip())
    ),
    SecretKind.TAILSCALE_AUTH_KEY: lambda v: v.startswith("tskey-"),
    SecretKind.TAILSCALE_API_TOKEN: lambda v: v.startswith("tskey-api-"),
    SecretKind.PASSWORD: lambda v: len(v) >= 8,
    SecretKind.UNKNOWN: lambda v: True,
}

INSTRUCTIONS: dict[SecretKind, str] = {
    SecretKind.PROXMOX_API_TOKEN: (
        "Proxmox API Token\n"
        "1. Open the Proxmox web interface\n"
        "2. Datacenter > Permissions > API Tokens\n"
        "3. Create a token and copy its value"
    ),
    SecretKind.SSH_PUBLIC_KEY: (
        "SSH Public Key\nGenerated together with the private key."
    ),
    SecretKind.SSH_PRIVATE_KEY: (
        "SSH Private Key (ED25519)\nA new key pair will be generated."
    ),
    SecretKind.TAILSCALE_AUTH_KEY: (
        "Tailscale Auth Key\n"
        "1. https://login.tailscale.com/admin/settings/keys\n"
        "2. Generate auth key: reusable, tag:vm, 90-day expiry\n"
        "3. Copy the key (tskey-...)"
    ),
    SecretKind.TAILSCALE_API_TOKEN: (
        "Tailscale API Token\n"
        "1. https://login.tailscale.com/admin/settings/keys\n"
        "2. Create a personal API token, 90-day expiry\n"
        "3. Copy the token (tskey-api-...)"
    ),
    SecretKind.PASSWORD: "Password\nA random 32 character password.",
}


def validate_format(kind: SecretKind, value: str) -> bool:
    """True if value looks like a secret of this kind."""
    return FORMAT_VALIDATORS[kind](value)


def instructions_for(kind: SecretKind) -> str:
    return INSTRUCTIONS.get(kind, f"Unknown secret kind: {kind}")


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


class RotationResult(BaseModel):
    """Outcome of initializing or rotating one secret."""

    success: bool
    new_value: str | None = Field(default=None, repr=False)
    dry_run: bool = False
    written: bool = False
    error: str | None = None


class RotationStrategy(ABC):
    """Produces a new value for an entry and writes it to the store."""

    external = False

    @abstractmethod
    async def new_value(self, entry: TemplateEntry) -> str:
        """A fresh value for entry."""

    async def initialize(
        self,
        entry: TemplateEntry,
        store: SecretStore,
        dry_run: bool = False,
    ) -> RotationResult:
        try:
            value = await self.new_value(entry)
        except (ExecutionError, SecretsError) as e:
            return RotationResult(success=False, dry_run=dry_run, error=str(e))
        return await write_value(entry, store, value, dry_run)

    async def rotate(
        self,
        entry: TemplateEntry,
        store: SecretStore,
        dry_run: bool = False,
        value: str | None = None,
    ) -> RotationResult:
        """Like initialize, but a supplied value is written as-is."""
        if value is not None:
            return await write_value(entry, store, value, dry_run)
        return await self.initialize(entry, store, dry_run)


async def write_value(
    entry: TemplateEntry,
    store: SecretStore,
    value: str,
    dry_run: bool,
) -> RotationResult:
    """Write value to entry's reference unless dry_run."""
    if dry_run:
        return RotationResult(success=True, new_value=value, dry_run=True)
    try:
        await store.write(entry.store_reference(), value)
    except (ParseError, SecretsError) as e:
        return RotationResult(success=False, new_value=value, error=str(e))
    logger.info(f"Wrote {entry.name} to {entry.reference}")
    return RotationResult(success=True, new_value=value, written=True)


class PasswordStrategy(RotationStrategy):
    async def new_value(self, entry: TemplateEntry) -> str:
        return generate_password()


class SshKeyPair(BaseModel):
    private_key: str = Field(repr=False)
    public_key: str


class SshKeyGenerator:
    """Generates ed25519 pairs with ssh-keygen.

    pair() caches one pair per process. The public and private key
    strategies share an instance, so initializing both halves in one
    run stores a matching pair.
    """

    def __init__(self, comment: str = "labctl"):
        self.comment = comment
        self._pair: SshKeyPair | None = None

    async def pair(self) -> SshKeyPair:
        if self._pair is None:
            self._pair = await self.generate()
        return self._pair

    async def generate(self) -> SshKeyPair:
        """A new pair on every call; the cached pair is left alone."""
        with tempfile.TemporaryDirectory(prefix="labctl-ssh-") as tmp:
            key_path = Path(tmp) / "id_ed25519"
            await execute(
                "ssh-keygen",
                ["-t", "ed25519", "-N", "", "-q",
                 "-C", self.comment, "-f", str(key_path)],
            )
            return SshKeyPair(
                private_key=key_path.read_text("utf-8"),
                public_key=key_path.with_suffix(".pub")
                .read_text("utf-8").strip(),
            )


_SSH_FIELDS = {
    SecretKind.SSH_PUBLIC_KEY: "public-key",
    SecretKind.SSH_PRIVATE_KEY: "private-key",
}


def _other_half(kind: SecretKind) -> SecretKind:
    if kind == SecretKind.SSH_PUBLIC_KEY:
        return SecretKind.SSH_PRIVATE_KEY
    return SecretKind.SSH_PUBLIC_KEY


def _item_of(reference: str) -> str:
    return reference.rstrip("/").rsplit("/", 1)[0]


def ssh_sibling(
    entry: TemplateEntry, entries: list[TemplateEntry]
) -> TemplateEntry | None:
    """Template entry holding the other half of entry's key pair.

    Only an entry of the opposite SSH kind in the same item counts.
    """
    other = _other_half(entry.kind)
    item = _item_of(entry.reference)
    return next(
        (e for e in entries
         if e.kind == other and _item_of(e.reference) == item),
        None,
    )


class SshKeyStrategy(RotationStrategy):
    def __init__(self, generator: SshKeyGenerator, public: bool):
        self.generator = generator
        self.public = public

    @property
    def kind(self) -> SecretKind:
        if self.public:
            return SecretKind.SSH_PUBLIC_KEY
        return SecretKind.SSH_PRIVATE_KEY

    async def new_value(self, entry: TemplateEntry) -> str:
        pair = await self.generator.pair()
        return pair.public_key if self.public else pair.private_key

    def derive_sibling(self, entry: TemplateEntry) -> TemplateEntry:
        """Entry for the other half, found by swapping the field name.

        Raises:
            ParseError: The reference is malformed
            SecretsError: The field does not name this half of a pair
        """
        ref = entry.store_reference()
        own = _SSH_FIELDS[self.kind]
        other = _other_half(self.kind)
        if own not in ref.field:
            raise SecretsError(
                f"Cannot find the other half of {entry.name}: field "
                f"{ref.field} does not contain {own}"
            )
        field = ref.field.replace(own, _SSH_FIELDS[other])
        return TemplateEntry(
            name=f"{entry.name}:{_SSH_FIELDS[other]}",
            reference=str(ref.model_copy(update={"field": field})),
            kind=other,
            line_number=0,
        )

    async def rotate(
        self,
        entry: TemplateEntry,
        store: SecretStore,
        dry_run: bool = False,
        value: str | None = None,
        sibling: TemplateEntry | None = None,
    ) -> RotationResult:
        """Replace both halves of the key pair from one new pair.

        sibling is the entry holding the other half; when omitted it is
        derived from entry's reference. A supplied value is written to
        entry alone.
        """
        if value is not None:
            return await write_value(entry, store, value, dry_run)
        try:
            sibling = sibling or self.derive_sibling(entry)
            pair = await self.generator.generate()
        except (ExecutionError, ParseError, SecretsError) as e:
            return RotationResult(success=False, dry_run=dry_run, error=str(e))

        own, other = pair.private_key, pair.public_key
        if self.public:
            own, other = other, own

        result = await write_value(entry, store, own, dry_run)
        if not result.success:
            return result
        other_result = await write_value(sibling, store, other, dry_run)
        if not other_result.success:
            return result.model_copy(update={
                "success": False,
                "error": (
                    f"{entry.name} was rotated but {sibling.name} was not, "
                    f"the stored pair no longer matches: {other_result.error}"
                ),
            })
        return result


class ExternalStrategy(RotationStrategy):
    """Secret issued by another system; labctl can only store it."""

    external = True

    def __init__(self, label: str, kind: SecretKind):
        self.label = label
        self.kind = kind

    @property
    def placeholder(self) -> str:
        return f"<{self.label.upper().replace(' ', '_')}_PLACEHOLDER>"

    async def new_value(self, entry: TemplateEntry) -> str:
        raise SecretsError(f"{self.label} must be generated externally")

    async def initialize(
        self,
        entry: TemplateEntry,
        store: SecretStore,
        dry_run: bool = False,
    ) -> RotationResult:
        if dry_run:
            return RotationResult(
                success=True, new_value=self.placeholder, dry_run=True
            )
        try:
            ref = entry.store_reference()
            hint = (
                f"op item create --vault {ref.vault} --title {ref.item} "
                f"{ref.assignment_field}=<value>"
            )
        except ParseError:
            hint = (
                "op item create --title <item> <field>=<value> "
                f"({entry.reference})"
            )
        return RotationResult(
            success=False,
            error=(
                f"{self.label} must be generated externally\n\n"
                f"{instructions_for(self.kind)}\n\n"
                f"Once obtained, run: labctl rotate --name {entry.name}\n"
                f"or store it manually:\n  {hint}"
            ),
        )


_ssh_keys = SshKeyGenerator()

STRATEGIES: dict[SecretKind, RotationStrategy] = {
    SecretKind.PROXMOX_API_TOKEN: ExternalStrategy(
        "Proxmox API Token", SecretKind.PROXMOX_API_TOKEN
    ),
    SecretKind.TAILSCALE_AUTH_KEY: ExternalStrategy(
        "Tailscale Auth Key", SecretKind.TAILSCALE_AUTH_KEY
    ),
    SecretKind.TAILSCALE_API_TOKEN: ExternalStrategy(
        "Tailscale API Token", SecretKind.TAILSCALE_API_TOKEN
    ),
    SecretKind.SSH_PUBLIC_KEY: SshKeyStrategy(_ssh_keys, public=True),
    SecretKind.SSH_PRIVATE_KEY: SshKeyStrategy(_ssh_keys, public=False),
    SecretKind.PASSWORD: PasswordStrategy(),
}


def strategy_for(kind: SecretKind) -> RotationStrategy | None:
    return STRATEGIES.get(kind)
