"""
Notification content resolution.

Turns a stored Notification into what the channels deliver: title, body,
link, translation variables, delivery config, cc list and (for verbose
notifications) a snapshot of the notifiable.

Title/body resolution order:
    1. Stored non-empty title/body on the notification
    2. Translation "{scope}.notify.{app_label}.{model_name}.{code}.{field}"
       of the notifiable's root model, rendered with str.format placeholders
    3. The notifiable's own title/body attribute (called if callable)
    4. ""

Translation catalogs:
    - SettingsTranslationCatalog: NOTIFICATIONS["TRANSLATIONS"][language]
    - GettextTranslationCatalog: Django gettext (locale/*.po files)

Usage:
    from notifications.content import ContentResolver

    content = ContentResolver().resolve(notification)
    content.title, content.body, content.link
"""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import urlsplit, urlunsplit
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.conf import settings
from django.utils import timezone as dj_timezone
from django.utils.module_loading import import_string
from django.utils.translation import get_language, gettext

from notifications.conf import notification_settings
from notifications.registry import (
    NotifyConfig,
    base_model,
    notifiable_registry,
    receiver_registry,
)

if TYPE_CHECKING:
    from django.db.models import Model

    from notifications.models import Notification

logger = logging.getLogger(__name__)

SNAPSHOT_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


# =============================================================================
# Translation catalogs
# =============================================================================


class TranslationCatalog(Protocol):
    """Lookup of localized notification templates."""

    def exists(self, key: str) -> bool: ...

    def translate(self, key: str, variables: dict[str, Any]) -> str: ...

    def template(self, key: str) -> str | None: ...


class _KeepMissing(dict):
    """format_map mapping that leaves unknown placeholders in place."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def placeholders(template: str) -> list[str]:
    """Top-level placeholder names referenced by a str.format template."""
    names: list[str] = []
    for _, field_name, _, _ in string.Formatter().parse(template):
        if not field_name:
            continue
        name = field_name.split(".", 1)[0].split("[", 1)[0]
        if name and name not in names:
            names.append(name)
    return names


def render_template(template: str, variables: dict[str, Any]) -> str:
    """
    Render a str.format template.

    Placeholders without a value are kept literally ("{name}").
    """
    missing = [name for name in placeholders(template) if name not in variables]
    if missing:
        logger.debug(f"Translation placeholders without value: {missing}")
    try:
        return template.format_map(_KeepMissing(variables))
    except (AttributeError, IndexError, KeyError, ValueError) as e:
        logger.warning(f"Could not render notification template {template!r}: {e}")
        return template


class SettingsTranslationCatalog:
    """
    Catalog backed by NOTIFICATIONS["TRANSLATIONS"].

    TRANSLATIONS maps a language code to {key: template}. The active
    language is tried first, then its base language ("pt" for "pt-br"),
    then LANGUAGE_CODE.
    """

    def _messages(self) -> dict[str, str]:
        translations = notification_settings.TRANSLATIONS or {}
        language = (get_language() or settings.LANGUAGE_CODE).lower()
        for candidate in (
            language,
            language.split("-", 1)[0],
            settings.LANGUAGE_CODE.lower(),
        ):
            if candidate in translations:
                return translations[candidate]
        return {}

    def template(self, key: str) -> str | None:
        return self._messages().get(key)

    def exists(self, key: str) -> bool:
        return key in self._messages()

    def translate(self, key: str, variables: dict[str, Any]) -> str:
        template = self.template(key)
        if template is None:
            return ""
        return render_template(template, variables)


class GettextTranslationCatalog:
    """Catalog backed by Django's gettext machinery."""

    def template(self, key: str) -> str | None:
        translated = gettext(key)
        return None if translated == key else translated

    def exists(self, key: str) -> bool:
        return self.template(key) is not None

    def translate(self, key: str, variables: dict[str, Any]) -> str:
        template = self.template(key)
        if template is None:
            return ""
        return render_template(template, variables)


def get_translation_catalog() -> TranslationCatalog:
    """Instantiate the catalog named by NOTIFICATIONS["TRANSLATION_CATALOG"]."""
    return import_string(notification_settings.TRANSLATION_CATALOG)()


# =============================================================================
# Serialization helpers
# =============================================================================


def serialize_instance(
    instance: Model,
    only: tuple[str, ...] = (),
    exclude: tuple[str, ...] = (),
    include: tuple[str, ...] = (),
    methods: tuple[str, ...] = (),
) -> dict[str, Any]:
    """
    Attribute snapshot of a model instance.

    Concrete fields are keyed by attname (foreign keys as "<name>_id").
    `include` names related objects serialized nested; `methods` names
    extra attributes, called when callable.
    """
    data: dict[str, Any] = {}
    for model_field in instance._meta.concrete_fields:
        names = {model_field.name, model_field.attname}
        if only and not names & set(only):
            continue
        if names & set(exclude):
            continue
        data[model_field.attname] = model_field.value_from_object(instance)

    for name in methods:
        value = getattr(instance, name, None)
        data[name] = value() if callable(value) else value

    for name in include:
        related = getattr(instance, name, None)
        if related is None:
            data[name] = None
        elif hasattr(related, "all"):
            data[name] = [serialize_instance(obj) for obj in related.all()]
        else:
            data[name] = serialize_instance(related)

    return data


def localize_snapshot(value: Any, tz: ZoneInfo) -> Any:
    """Convert every datetime in a snapshot to `tz`, formatted as text."""
    if isinstance(value, datetime):
        if dj_timezone.is_naive(value):
            value = dj_timezone.make_aware(value, dj_timezone.get_default_timezone())
        return value.astimezone(tz).strftime(SNAPSHOT_DATETIME_FORMAT)
    if isinstance(value, dict):
        return {key: localize_snapshot(item, tz) for key, item in value.items()}
    if isinstance(value, list):
        return [localize_snapshot(item, tz) for item in value]
    return value


# =============================================================================
# Resolver
# =============================================================================


@dataclass(frozen=True)
class ResolvedContent:
    """Everything the channels need to deliver one notification."""

    title: str
    body: str
    link: str
    variables: dict[str, Any] = field(default_factory=dict)
    config: NotifyConfig = field(default_factory=NotifyConfig)
    cc_emails: list[str] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)


class ContentResolver:
    """
    Resolves the delivered content of notifications.

    Never raises for unregistered notifiable types or missing
    translations; those fall back to defaults.
    """

    def __init__(self, catalog: TranslationCatalog | None = None):
        self.catalog = catalog or get_translation_catalog()

    def resolve(self, notification: Notification) -> ResolvedContent:
        config = self.config(notification)
        return ResolvedContent(
            title=self.title(notification),
            body=self.body(notification),
            link=self.link(notification),
            variables=self.translation_variables(notification),
            config=config,
            cc_emails=self.cc_emails(notification, config=config),
            attributes=self.verbose_attributes(notification),
        )

    # -------------------------------------------------------------------------
    # Title / body
    # -------------------------------------------------------------------------

    def title(self, notification: Notification) -> str:
        return self._text(notification, "title")

    def body(self, notification: Notification) -> str:
        return self._text(notification, "body")

    def translation_key(self, notification: Notification, field_name: str) -> str | None:
        """Catalog key of a notification field, or None without a notifiable."""
        model = self._notifiable_model(notification)
        if model is None:
            return None
        opts = base_model(model)._meta
        scope = notification_settings.TRANSLATION_SCOPE
        return f"{scope}.notify.{opts.app_label}.{opts.model_name}.{notification.code}.{field_name}"

    def _text(self, notification: Notification, field_name: str) -> str:
        stored = getattr(notification, field_name)
        if stored:
            return stored

        key = self.translation_key(notification, field_name)
        if key is None:
            return ""

        if self.catalog.exists(key):
            return self.catalog.translate(key, self.translation_variables(notification))

        notifiable = notification.notifiable
        value = getattr(notifiable, field_name, None) if notifiable is not None else None
        if callable(value):
            value = value()
        return "" if value is None else str(value)

    def translation_variables(self, notification: Notification) -> dict[str, Any]:
        """
        Variables available to translation templates.

        The notifiable's projected attributes merged with the config's
        literal tr_values; literal values win.
        """
        config = self.config(notification)
        notifiable = notification.notifiable
        variables: dict[str, Any] = {}
        if notifiable is not None:
            variables.update(self._project(notifiable, config))
        variables.update(config.tr_values)
        return variables

    # -------------------------------------------------------------------------
    # Link
    # -------------------------------------------------------------------------

    def link(self, notification: Notification) -> str:
        """
        Stored link, else a link to the linked entity, else to the
        notification itself. The path replaces any path on LINK_HOST.
        """
        if notification.link:
            return notification.link

        if notification.linked_content_type_id and notification.linked_id:
            content_type = notification.linked_content_type
            path = f"/{content_type.app_label}/{content_type.model}/{notification.linked_id}"
        else:
            path = f"/notifications/notification/{notification.pk}"

        host = urlsplit(notification_settings.LINK_HOST)
        return urlunsplit((host.scheme, host.netloc, path, "", ""))

    # -------------------------------------------------------------------------
    # Config / cc
    # -------------------------------------------------------------------------

    def config(self, notification: Notification) -> NotifyConfig:
        return notifiable_registry.config_for(
            self._notifiable_model(notification), notification.code
        )

    def cc_emails(
        self,
        notification: Notification,
        config: NotifyConfig | None = None,
    ) -> list[str]:
        """Config cc producers (flattened) followed by the stored list."""
        config = config or self.config(notification)
        emails: list[str] = []
        notifiable = notification.notifiable
        if notifiable is not None:
            emails.extend(config.resolve_cc_emails(notifiable))
        emails.extend(notification.cc_emails or [])
        return emails

    # -------------------------------------------------------------------------
    # Verbose snapshot
    # -------------------------------------------------------------------------

    def verbose_attributes(self, notification: Notification) -> dict[str, Any]:
        """
        Snapshot of the notifiable for verbose notifications.

        Datetimes are rendered in the receiver's timezone (falling back to
        TIME_ZONE). Non-verbose notifications get {}.
        """
        if not notification.verbose:
            return {}
        notifiable = notification.notifiable
        if notifiable is None:
            return {}
        snapshot = self._project(notifiable, self.config(notification))
        return localize_snapshot(snapshot, self.receiver_timezone(notification))

    def receiver_timezone(self, notification: Notification) -> ZoneInfo:
        receiver = notification.receiver
        name = receiver_registry.adapter_for(receiver).timezone(receiver) if receiver else None
        if name:
            try:
                return ZoneInfo(name)
            except (ZoneInfoNotFoundError, ValueError):
                logger.debug(
                    f"Unknown timezone {name!r} for receiver "
                    f"{notification.receiver_id}, using {settings.TIME_ZONE}"
                )
        return ZoneInfo(settings.TIME_ZONE)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _notifiable_model(self, notification: Notification) -> type[Model] | None:
        if not notification.notifiable_content_type_id:
            return None
        return notification.notifiable_content_type.model_class()

    def _project(self, notifiable: Model, config: NotifyConfig) -> dict[str, Any]:
        return serialize_instance(
            notifiable,
            only=config.only,
            exclude=config.exclude,
            include=config.include,
            methods=config.methods,
        )
