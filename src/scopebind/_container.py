from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, TypeVar

from ._errors import (
    CyclicDependency,
    DuplicateRegistration,
    ExplicitProviderNotRegistered,
    ExplicitProviderUnsuitable,
    FactoryResultMismatch,
    NonOverwritableStrategy,
    NoSuitableScope,
    TypeNotRegistered,
)
from ._registry import InstanceCache, ProviderDescriptor, Registry, StrategyTable
from ._scope import Scope
from ._validation import Validator, require_class


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from ._registry import Registration

T = TypeVar("T")


class Container:
    """Service container binding contracts to providers.

    - register providers for automatic construction, or factories
    - dependency graph validated at registration time
    - lifetimes: volatile / managed / singleton, enforced between
      dependents and their dependencies
    - overloaded contracts resolve to the first suitable provider
    """

    def __init__(self, *, auto_resolve_overloaded_dependencies: bool = False) -> None:
        self.auto_resolve_overloaded_dependencies = auto_resolve_overloaded_dependencies
        self._registry = Registry()
        self._strategies = StrategyTable()
        self._cache = InstanceCache()
        self._validator = Validator(self._registry, lambda: self.auto_resolve_overloaded_dependencies)
        self._lock = threading.Lock()
        self._local = threading.local()
        self._guards: dict[tuple[type, type], threading.Lock] = {}

    # -- registration -----------------------------------------------------

    def register(
        self,
        contract: type,
        provider: type,
        scope: Scope = Scope.VOLATILE,
        *,
        dependencies: Iterable[type] | None = None,
    ) -> None:
        """Register `provider` to be constructed automatically for `contract`.

        Constructor dependencies are read from the annotations of
        `provider.__init__`, unless `dependencies` lists them explicitly, in
        which case they are passed positionally in that order.

        Example:
          container.register(IRepo, SqlRepo, Scope.SINGLETON)
          container.register(IService, Service, dependencies=[IRepo])

        """
        require_class(contract, "contract")
        require_class(provider, "provider")
        scope = Scope(scope)

        explicit = None
        if dependencies is not None:
            explicit = ProviderDescriptor.of(*dependencies)
            for dep in explicit.contracts:
                require_class(dep, "dependency")

        with self._lock:
            if self._registry.has_registration(contract, provider):
                raise DuplicateRegistration(contract, provider)

            self._validator.check_assignable(contract, provider)

            if explicit is None:
                descriptor = self._validator.describe(contract, provider)
            else:
                descriptor = explicit
                self._validator.check_explicit(contract, provider, descriptor)

            self._validator.check_dependencies(contract, provider, scope, descriptor)
            self._registry.add(contract, provider, scope, descriptor)

        logger.debug(
            "Registered %s -> %s (%s, %d dependencies)",
            contract.__name__,
            provider.__name__,
            scope.name,
            len(descriptor.dependencies),
        )

    def register_factory(
        self,
        contract: type,
        provider: type,
        factory: Callable[[Container], object],
        scope: Scope = Scope.VOLATILE,
        *,
        overwrite_existing: bool = False,
    ) -> None:
        """Register a factory producing `provider` instances for `contract`.

        The factory receives the container and replaces automatic
        construction, so the provider's constructor is not inspected.
        Registering a factory for an already registered pair is allowed; a
        different `scope` moves the pair to that scope.

        The factory's result is checked against `contract` at resolve time.
        `None` never satisfies a contract, so a factory returning `None` can
        be registered but raises `FactoryResultMismatch` when resolved.
        """
        require_class(contract, "contract")
        require_class(provider, "provider")
        if not callable(factory):
            msg = f"factory must be callable, got {factory!r}"
            raise ValueError(msg)
        scope = Scope(scope)
        key = (contract, provider)

        with self._lock:
            self._validator.check_assignable(contract, provider)

            if key in self._strategies and not overwrite_existing:
                raise NonOverwritableStrategy(contract, provider)

            existing = self._registry.get(contract, provider)
            if existing is not None and existing.scope != scope:
                self._validator.check_scope_transition(contract, provider, scope)

            if key in self._strategies:
                logger.debug("Overwriting factory for %s -> %s", contract.__name__, provider.__name__)
            self._strategies.set(key, factory)

            if existing is None:
                self._registry.add(contract, provider, scope)
            else:
                if existing.scope != scope:
                    logger.debug(
                        "Moving %s -> %s from %s to %s",
                        contract.__name__,
                        provider.__name__,
                        existing.scope.name,
                        scope.name,
                    )
                    existing.scope = scope
                # the factory now builds the instance
                existing.descriptor = None
                self._cache.invalidate(key)

        logger.debug("Registered factory %s -> %s (%s)", contract.__name__, provider.__name__, scope.name)

    def register_instance(self, contract: type, instance: object, *, replace: bool = False) -> None:
        """Register a pre-built instance (always singleton)."""
        self.register_factory(
            contract,
            type(instance),
            lambda _: instance,
            Scope.SINGLETON,
            overwrite_existing=replace,
        )

    # -- queries ----------------------------------------------------------

    def has_registration(self, contract: type, provider: type | None = None) -> bool:
        with self._lock:
            return self._registry.has_registration(contract, provider)

    def scope_of(self, contract: type, provider: type) -> Scope:
        with self._lock:
            reg = self._registry.get(contract, provider)
        if reg is None:
            raise ExplicitProviderNotRegistered(contract, provider)
        return reg.scope

    def managed_registrations(self) -> Iterator[tuple[type, type]]:
        with self._lock:
            pairs = list(self._registry.managed())
        yield from pairs

    @property
    def registered_count(self) -> int:
        with self._lock:
            return self._registry.count

    @property
    def cached_instance_count(self) -> int:
        with self._lock:
            return self._cache.count

    # -- resolution -------------------------------------------------------

    def resolve(self, contract: type[T], min_scope: Scope = Scope.VOLATILE) -> T:
        """Resolve an instance from the first provider registered with at least `min_scope`."""
        min_scope = Scope(min_scope)
        with self._lock:
            if not self._registry.has_registration(contract):
                raise TypeNotRegistered(contract)
            found = self._registry.first_suitable(contract, min_scope)
        if found is None:
            raise NoSuitableScope(contract, min_scope)

        provider, reg = found
        return self._instantiate(contract, provider, reg)

    def resolve_explicit(self, contract: type, provider: type[T], min_scope: Scope = Scope.VOLATILE) -> T:
        """Resolve an instance of a specific `provider` registered for `contract`."""
        min_scope = Scope(min_scope)
        with self._lock:
            if not self._registry.has_registration(contract):
                raise TypeNotRegistered(contract)
            reg = self._registry.get(contract, provider)
        if reg is None:
            raise ExplicitProviderNotRegistered(contract, provider)
        if reg.scope < min_scope:
            raise ExplicitProviderUnsuitable(contract, provider, min_scope)

        return self._instantiate(contract, provider, reg)

    def _resolution_path(self) -> list[tuple[type, type]]:
        path = getattr(self._local, "path", None)
        if path is None:
            path = self._local.path = []
        return path

    def _instantiate(self, contract: type, provider: type, reg: Registration) -> Any:
        key = (contract, provider)
        path = self._resolution_path()
        if key in path:
            raise CyclicDependency([*path[path.index(key) :], key])

        if reg.scope is Scope.VOLATILE:
            with self._lock:
                strategy = self._strategies.get(key)
            return self._build(contract, provider, reg, strategy)

        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            guard = self._guards.setdefault(key, threading.Lock())

        # one build per pair at a time; later threads pick up the stored instance
        with guard:
            with self._lock:
                cached = self._cache.get(key)
                if cached is not None:
                    return cached
                strategy = self._strategies.get(key)
                stamp = self._cache.stamp(key)

            instance = self._build(contract, provider, reg, strategy)

            with self._lock:
                instance = self._cache.store(key, instance, stamp)

        logger.debug("Cached %s -> %s (%s)", contract.__name__, provider.__name__, reg.scope.name)
        return instance

    def _build(self, contract: type, provider: type, reg: Registration, strategy: Callable | None) -> Any:
        # Built outside the lock: factories and constructors may resolve
        # further services from this container.
        path = self._resolution_path()
        path.append((contract, provider))
        try:
            if strategy is None:
                return Constructor(self).construct(provider, reg)
            instance = strategy(self)
            if not self._validator.instance_satisfies(contract, instance):
                raise FactoryResultMismatch(contract, provider, instance)
            return instance
        finally:
            path.pop()

    # -- lifecycle --------------------------------------------------------

    def recycle_managed(self) -> None:
        """Drop cached MANAGED instances; the next resolution builds new ones."""
        with self._lock:
            n = self._cache.invalidate_many(self._registry.managed())
        logger.debug("Recycled %d managed instance(s)", n)

    def clear(self) -> None:
        """Remove every registration, factory and cached instance."""
        with self._lock:
            self._registry.clear()
            self._strategies.clear()
            self._cache.clear()
            self._guards.clear()
        logger.debug("Container cleared")


class Constructor:
    """Builds a provider from its descriptor, resolving each dependency."""

    def __init__(self, resolver: Container) -> None:
        self._resolver = resolver

    def construct(self, provider: type[T], reg: Registration) -> T:
        if reg.descriptor is None:
            return provider()

        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for dep in reg.descriptor.dependencies:
            # dependencies of a longer-lived provider never come from a shorter-lived registration
            value = self._resolver.resolve(dep.contract, reg.scope)
            if dep.positional or dep.name is None:
                args.append(value)
            else:
                kwargs[dep.name] = value

        return provider(*args, **kwargs)
