"""Administrator-controlled settings (pricing, outbound mail, credentials).

Each section is one ``SettingsSection`` row, created lazily with defaults
from Django settings the first time it is read and updated in place by the
admin endpoints afterwards. Consumers never read the rows directly: they
take a ``SettingsSnapshot`` at the start of an operation and use it for the
whole operation, so a pricing change cannot leak into an order half way
through being created.
"""

import logging
from dataclasses import dataclass

from django.conf import settings
from django.db import transaction
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import SettingsSection

logger = logging.getLogger("orders.settings")

MASK = "••••••••"


@dataclass(frozen=True)
class PricingSettings:
    price_per_word: int


@dataclass(frozen=True)
class EmailSettings:
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    sender_email: str

    @property
    def configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)


@dataclass(frozen=True)
class ApiKeySettings:
    openai_api_key: str
    stripe_secret_key: str
    stripe_webhook_secret: str


@dataclass(frozen=True)
class SettingsSnapshot:
    pricing: PricingSettings
    email: EmailSettings
    api_keys: ApiKeySettings


# ---- Per-section update schemas ----
# Field names or the camelCase keys of the admin UI; anything else is rejected.
class _SectionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


def _field(name: str, camel: str, **kw):
    return Field(default=None, validation_alias=AliasChoices(name, camel), **kw)


class PricingUpdate(_SectionUpdate):
    price_per_word: int | None = _field("price_per_word", "pricePerWord", gt=0, le=10_000)


class EmailUpdate(_SectionUpdate):
    smtp_host: str | None = _field("smtp_host", "smtpHost", max_length=255)
    smtp_port: int | None = _field("smtp_port", "smtpPort", gt=0, lt=65536)
    smtp_user: str | None = _field("smtp_user", "smtpUser", max_length=255)
    smtp_password: str | None = _field("smtp_password", "smtpPassword", max_length=255)
    sender_email: str | None = _field("sender_email", "senderEmail", max_length=254)


class ApiKeysUpdate(_SectionUpdate):
    openai_api_key: str | None = _field("openai_api_key", "openaiApiKey", max_length=512)
    stripe_secret_key: str | None = _field("stripe_secret_key", "stripeSecretKey", max_length=512)
    stripe_webhook_secret: str | None = _field("stripe_webhook_secret", "stripeWebhookSecret", max_length=512)


SECTION_SCHEMAS = {
    "pricing": PricingUpdate,
    "email": EmailUpdate,
    "api_keys": ApiKeysUpdate,
}

SECRET_FIELDS = {
    "email": ("smtp_password",),
    "api_keys": ("openai_api_key", "stripe_secret_key", "stripe_webhook_secret"),
}


def default_sections() -> dict:
    """Section defaults seeded from Django settings (environment)."""
    return {
        "pricing": {"price_per_word": settings.PRICE_PER_WORD_CENTS},
        "email": {
            "smtp_host": settings.SMTP_HOST,
            "smtp_port": settings.SMTP_PORT,
            "smtp_user": settings.SMTP_USER,
            "smtp_password": settings.SMTP_PASSWORD,
            "sender_email": settings.SMTP_SENDER,
        },
        "api_keys": {
            "openai_api_key": settings.OPENAI_API_KEY,
            "stripe_secret_key": settings.STRIPE_SECRET_KEY,
            "stripe_webhook_secret": settings.STRIPE_WEBHOOK_SECRET,
        },
    }


class SettingsStore:
    """Read/write access to the settings sections."""

    def _section(self, name: str) -> dict:
        defaults = default_sections()[name]
        row, created = SettingsSection.objects.get_or_create(section=name, defaults={"data": defaults})
        if created:
            logger.info("settings section initialized", extra={"section": name})
        # Keys added after the row was created fall back to their defaults
        return {**defaults, **row.data}

    def sections(self) -> dict:
        return {name: self._section(name) for name in SECTION_SCHEMAS}

    def snapshot(self) -> SettingsSnapshot:
        """Capture every section into an immutable snapshot."""
        data = self.sections()
        email = data["email"]
        keys = data["api_keys"]
        return SettingsSnapshot(
            pricing=PricingSettings(price_per_word=int(data["pricing"]["price_per_word"])),
            email=EmailSettings(
                smtp_host=email["smtp_host"] or "",
                smtp_port=int(email["smtp_port"] or 587),
                smtp_user=email["smtp_user"] or "",
                smtp_password=email["smtp_password"] or "",
                sender_email=email["sender_email"] or settings.SMTP_SENDER,
            ),
            api_keys=ApiKeySettings(
                openai_api_key=keys["openai_api_key"] or "",
                stripe_secret_key=keys["stripe_secret_key"] or "",
                stripe_webhook_secret=keys["stripe_webhook_secret"] or "",
            ),
        )

    @transaction.atomic
    def update_section(self, name: str, partial: dict) -> dict:
        """Merge ``partial`` into section ``name``.

        Only fields present in ``partial`` are changed; a field set to None,
        or a secret equal to the display mask, is ignored. Keys may be the
        field names or their camelCase form; unknown keys are rejected.

        Args:
            name: ``pricing``, ``email`` or ``api_keys``.
            partial: Raw request data for that section.

        Returns:
            dict: The section after the update (unmasked).

        Raises:
            ValidationError: ``UNKNOWN_SECTION`` or ``INVALID_SETTINGS``.
        """
        schema = SECTION_SCHEMAS.get(name)
        if schema is None:
            raise ValidationError("UNKNOWN_SECTION")
        try:
            update = schema.model_validate(partial or {})
        except PydanticValidationError:
            raise ValidationError("INVALID_SETTINGS")

        current = self._section(name)
        row = SettingsSection.objects.select_for_update().get(section=name)
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        # a masked value echoed back from masked() means "unchanged"
        for key in SECRET_FIELDS.get(name, ()):
            if changes.get(key) == MASK:
                del changes[key]
        row.data = {**current, **changes}
        row.save(update_fields=["data", "updated_at"])
        logger.info("settings section updated", extra={"section": name, "fields": sorted(changes)})
        return row.data

    def masked(self) -> dict:
        """All sections with secrets replaced by a fixed mask (empty stays empty)."""
        out = {}
        for name, data in self.sections().items():
            data = dict(data)
            for key in SECRET_FIELDS.get(name, ()):
                data[key] = MASK if data.get(key) else ""
            out[name] = data
        return out
