"""Adapter registry - maps a channel's ``payment`` name to its adapter class."""
from typing import Dict, List, Type

from ..exceptions import ConfigurationError
from .adapter import PaymentAdapter
from .stripe_adapter import StripeAdapter
from .stripe_allinone import StripeAllInOneAdapter


class PSPDispatcher:
    """
    Resolves adapter classes by name.
    Adapters are instantiated per request with the channel's own config.
    """

    _adapters: Dict[str, Type[PaymentAdapter]] = {}

    @classmethod
    def register(cls, adapter_cls: Type[PaymentAdapter]) -> Type[PaymentAdapter]:
        if not adapter_cls.name:
            raise ValueError(f"{adapter_cls.__name__} has no name")
        cls._adapters[adapter_cls.name] = adapter_cls
        return adapter_cls

    @classmethod
    def get_adapter_class(cls, method: str) -> Type[PaymentAdapter]:
        """
        Get the adapter class registered for ``method``.

        Raises:
            ConfigurationError: if no adapter is registered under that name
        """
        adapter_cls = cls._adapters.get(method)
        if adapter_cls is None:
            raise ConfigurationError("gate is not found", status_code=404)
        return adapter_cls

    @classmethod
    def methods(cls) -> List[str]:
        return sorted(cls._adapters)


PSPDispatcher.register(StripeAdapter)
PSPDispatcher.register(StripeAllInOneAdapter)
