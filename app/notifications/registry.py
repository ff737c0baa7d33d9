"""
Notifiable and receiver registries.

Notifiable registry:
    Maps a notifiable model to its known event codes and the delivery
    configuration of each code. Apps register their models from
    AppConfig.ready():

        from notifications.registry import NotifyConfig, notifiable_registry

        class ShopConfig(AppConfig):
            def ready(self):
                from shop.models import Order

                notifiable_registry.register(
                    Order,
                    {
                        "shipped": NotifyConfig(
                            mailer="shop.mailers.OrderMailer",
                            cc_emails=[lambda order: order.merchant_email],
                            only=["number", "city", "shipped_at"],
                        ),
                        "refunded": {"tr_values": {"support": "help@example.com"}},
                    },
                )

Receiver registry:
    Maps receiver models to a ReceiverAdapter describing where the
    receiver's timezone, socket tokens, push token and email live.
    Unregistered receivers get the attribute-based default adapter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from django.db.models import Model

logger = logging.getLogger(__name__)


def base_model(model: type[Model] | Model) -> type[Model]:
    """
    Root concrete model of a model class or instance.

    Proxies resolve to their concrete model and multi-table children to
    their top-most concrete parent, so every subtype shares one category.
    """
    concrete = model._meta.concrete_model
    parents = concrete._meta.get_parent_list()
    return parents[-1] if parents else concrete


def category_label(model: type[Model] | Model) -> str:
    """Category key of a notifiable, e.g. "shop.order"."""
    return base_model(model)._meta.label_lower


@dataclass(frozen=True)
class NotifyConfig:
    """
    Delivery configuration of one (notifiable type, code).

    Attributes:
        mailer: Dotted path of the mailer class ("" = default mailer)
        mailer_method: Mailer method called with the notifiable id
        cc_emails: Literal addresses or callables of the notifiable
            returning an address or a list of addresses
        only: Whitelist of notifiable attributes to serialize
        exclude: Attributes to leave out of the serialization
        include: Related objects serialized nested
        methods: Extra notifiable methods/properties to serialize
        tr_values: Literal translation variables (win over attributes)
    """

    mailer: str = ""
    mailer_method: str = "notify"
    cc_emails: tuple[Any, ...] = ()
    only: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    include: tuple[str, ...] = ()
    methods: tuple[str, ...] = ()
    tr_values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_value(cls, value: NotifyConfig | dict | None) -> NotifyConfig:
        """Build a config from a NotifyConfig, a plain dict or None."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        return cls(**dict(value))

    def __post_init__(self):
        for name in ("cc_emails", "only", "exclude", "include", "methods"):
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))
        object.__setattr__(self, "tr_values", dict(self.tr_values or {}))

    def resolve_cc_emails(self, notifiable: Any) -> list[str]:
        """Evaluate cc producers against the notifiable, flattened."""
        emails: list[str] = []
        for producer in self.cc_emails:
            value = producer(notifiable) if callable(producer) else producer
            if value is None:
                continue
            if isinstance(value, str):
                emails.append(value)
            else:
                emails.extend(v for v in value if v)
        return emails


def _as_tuple(value: Any) -> tuple:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or callable(value):
        return (value,)
    return tuple(value)


class NotifiableRegistry:
    """Map of notifiable model label -> {code -> NotifyConfig}."""

    def __init__(self):
        self._registry: dict[str, dict[str, NotifyConfig]] = {}

    def register(
        self,
        model: type[Model],
        codes: dict[str, NotifyConfig | dict | None] | Iterable[str],
    ) -> None:
        """
        Register a notifiable model and its codes.

        Codes may be given as a mapping to configs or as a plain list of
        code names. Registering the same model again merges the codes.
        """
        label = category_label(model)
        if isinstance(codes, dict):
            configs = {code: NotifyConfig.from_value(value) for code, value in codes.items()}
        else:
            configs = {code: NotifyConfig() for code in codes}
        self._registry.setdefault(label, {}).update(configs)
        logger.debug(f"Registered notifiable {label} codes={sorted(configs)}")

    def unregister(self, model: type[Model]) -> None:
        self._registry.pop(category_label(model), None)

    def is_registered(self, model: type[Model] | Model) -> bool:
        return category_label(model) in self._registry

    def codes(self, model: type[Model] | Model) -> list[str]:
        return list(self._registry.get(category_label(model), {}))

    def is_known_code(self, model: type[Model] | Model, code: str) -> bool:
        return code in self._registry.get(category_label(model), {})

    def config_for(self, model: type[Model] | Model | None, code: str) -> NotifyConfig:
        """
        Delivery configuration for (model, code).

        Unregistered models or codes yield the default NotifyConfig.
        """
        if model is None:
            return NotifyConfig()
        return self._registry.get(category_label(model), {}).get(code) or NotifyConfig()

    def labels(self) -> list[str]:
        """Labels of every registered notifiable type, in registration order."""
        return list(self._registry)


class ReceiverAdapter:
    """
    Delivery capabilities of a receiver.

    The default implementation reads same-named attributes from the
    receiver and treats anything missing as "not available". Subclass and
    register per receiver model when the data lives elsewhere.
    """

    def timezone(self, receiver: Any) -> str | None:
        return getattr(receiver, "timezone", None) or None

    def socket_tokens(self, receiver: Any) -> list[str]:
        tokens = getattr(receiver, "socket_tokens", None)
        if callable(tokens):
            tokens = tokens()
        return list(tokens or [])

    def push_token(self, receiver: Any) -> str | None:
        return getattr(receiver, "push_token", None) or None

    def email(self, receiver: Any) -> str | None:
        return getattr(receiver, "email", None) or None


class ReceiverRegistry:
    """Map of receiver model label -> ReceiverAdapter."""

    def __init__(self, default: ReceiverAdapter | None = None):
        self._registry: dict[str, ReceiverAdapter] = {}
        self.default = default or ReceiverAdapter()

    def register(self, model: type[Model], adapter: ReceiverAdapter) -> None:
        self._registry[model._meta.label_lower] = adapter

    def adapter_for(self, receiver: Model | type[Model] | None) -> ReceiverAdapter:
        if receiver is None:
            return self.default
        label = receiver._meta.concrete_model._meta.label_lower
        return self._registry.get(label, self.default)


notifiable_registry = NotifiableRegistry()
receiver_registry = ReceiverRegistry()
