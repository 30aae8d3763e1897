from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NamedTuple

from ._scope import Scope


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    Key = tuple[type, type]


class Dependency(NamedTuple):
    """A single constructor dependency of a provider."""

    name: str | None
    contract: type
    positional: bool = True


@dataclass(frozen=True)
class ProviderDescriptor:
    """The dependencies a provider needs, in call order.

    Computed once when the provider is registered; construction uses it
    instead of inspecting the provider again.
    """

    dependencies: tuple[Dependency, ...] = ()

    @classmethod
    def of(cls, *contracts: type) -> ProviderDescriptor:
        return cls(tuple(Dependency(None, c) for c in contracts))

    @property
    def contracts(self) -> tuple[type, ...]:
        return tuple(d.contract for d in self.dependencies)


@dataclass
class Registration:
    scope: Scope
    descriptor: ProviderDescriptor | None = None


class Registry:
    """Maps each contract to its providers, in registration order."""

    def __init__(self) -> None:
        self._services: dict[type, dict[type, Registration]] = {}

    def has_registration(self, contract: type, provider: type | None = None) -> bool:
        providers = self._services.get(contract)
        if not providers:
            return False
        return provider is None or provider in providers

    def get(self, contract: type, provider: type) -> Registration | None:
        return self._services.get(contract, {}).get(provider)

    def providers(self, contract: type) -> list[tuple[type, Registration]]:
        return list(self._services.get(contract, {}).items())

    def first_suitable(self, contract: type, min_scope: Scope) -> tuple[type, Registration] | None:
        for provider, reg in self._services.get(contract, {}).items():
            if reg.scope >= min_scope:
                return provider, reg
        return None

    def add(self, contract: type, provider: type, scope: Scope, descriptor: ProviderDescriptor | None = None) -> bool:
        """Add the pair if absent. Returns False when it already existed."""
        providers = self._services.setdefault(contract, {})
        if provider in providers:
            return False
        providers[provider] = Registration(scope=scope, descriptor=descriptor)
        return True

    def dependents_of(self, contract: type) -> Iterator[tuple[type, type, Registration]]:
        for owner, providers in self._services.items():
            for provider, reg in providers.items():
                if reg.descriptor is not None and contract in reg.descriptor.contracts:
                    yield owner, provider, reg

    def managed(self) -> Iterator[Key]:
        for contract, providers in self._services.items():
            for provider, reg in providers.items():
                if reg.scope == Scope.MANAGED:
                    yield contract, provider

    @property
    def count(self) -> int:
        return sum(len(providers) for providers in self._services.values())

    def clear(self) -> None:
        self._services.clear()


class StrategyTable:
    """User-supplied factories keyed by (contract, provider)."""

    def __init__(self) -> None:
        self._strategies: dict[Key, Callable[[Any], object]] = {}

    def __contains__(self, key: Key) -> bool:
        return key in self._strategies

    def get(self, key: Key) -> Callable[[Any], object] | None:
        return self._strategies.get(key)

    def set(self, key: Key, factory: Callable[[Any], object]) -> None:
        self._strategies[key] = factory

    def clear(self) -> None:
        self._strategies.clear()


@dataclass
class InstanceCache:
    """Resolved instances for scopes longer than VOLATILE.

    Invalidated entries stay in the map with a None value. Each key carries a
    generation that advances when that key is invalidated, and `clear` starts
    a new epoch, so an instance built across an invalidation of its own key
    is not stored.
    """

    _instances: dict[Key, object | None] = field(default_factory=dict)
    _generations: dict[Key, int] = field(default_factory=dict)
    epoch: int = 0

    def get(self, key: Key) -> object | None:
        return self._instances.get(key)

    def stamp(self, key: Key) -> tuple[int, int]:
        """Current (epoch, generation) of `key`, to be handed back to `store`."""
        return self.epoch, self._generations.get(key, 0)

    def store(self, key: Key, instance: object, stamp: tuple[int, int]) -> object:
        """Store `instance` unless a live one is already present (first writer wins).

        Returns whichever instance is cached afterwards. If `key` was
        invalidated, or the cache cleared, since `stamp` was taken, nothing is
        stored.
        """
        current = self._instances.get(key)
        if current is not None:
            return current
        if stamp != self.stamp(key):
            logger.debug("Not caching %s: invalidated during construction", key[1].__name__)
            return instance
        self._instances[key] = instance
        return instance

    def invalidate(self, key: Key) -> bool:
        self._generations[key] = self._generations.get(key, 0) + 1
        if self._instances.get(key) is None:
            return False
        self._instances[key] = None
        return True

    def invalidate_many(self, keys: Iterator[Key]) -> int:
        return sum(self.invalidate(key) for key in keys)

    @property
    def count(self) -> int:
        return sum(1 for v in self._instances.values() if v is not None)

    def clear(self) -> None:
        self._instances.clear()
        self._generations.clear()
        self.epoch += 1
