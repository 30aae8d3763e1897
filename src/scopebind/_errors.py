from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from ._scope import Scope


def _name(tp: object) -> str:
    return getattr(tp, "__name__", repr(tp))


class ContainerError(RuntimeError):
    """Base class for every error raised by a container.

    Attributes name the offending contract/provider so callers can act on
    the failure without inspecting container internals.
    """

    def __init__(
        self,
        msg: str,
        *,
        contract: type | None = None,
        provider: type | None = None,
        dependency: object = None,
        scope: Scope | None = None,
    ) -> None:
        super().__init__(msg)
        self.contract = contract
        self.provider = provider
        self.dependency = dependency
        self.scope = scope


class RegistrationError(ContainerError):
    pass


class ResolutionError(ContainerError):
    pass


class DuplicateRegistration(RegistrationError):
    def __init__(self, contract: type, provider: type) -> None:
        msg = (
            f"{_name(contract)} is already registered to resolve {_name(provider)}. "
            f"Register a different provider to overload {_name(contract)}."
        )
        super().__init__(msg, contract=contract, provider=provider)


class UnassignableProvider(RegistrationError, TypeError):
    def __init__(self, contract: type, provider: type, reason: str = "") -> None:
        msg = f"Cannot register {_name(provider)} for {_name(contract)}: instances of {_name(provider)} do not satisfy {_name(contract)}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg, contract=contract, provider=provider)


class AmbiguousConstructor(RegistrationError):
    def __init__(self, contract: type, provider: type) -> None:
        msg = (
            f"{_name(provider)} declares more than one __init__ overload, which is too ambiguous "
            "for automatic construction. Use register_factory() or pass `dependencies` explicitly."
        )
        super().__init__(msg, contract=contract, provider=provider)


class DependencyArityMismatch(RegistrationError):
    def __init__(self, contract: type, provider: type, count: int, reason: str) -> None:
        msg = (
            f"{_name(provider)} cannot be constructed from the {count} dependencies listed "
            f"for {_name(contract)}: {reason}"
        )
        super().__init__(msg, contract=contract, provider=provider)


class UnannotatedDependency(RegistrationError):
    def __init__(self, contract: type, provider: type, param: str) -> None:
        msg = (
            f"{_name(provider)} cannot be registered: constructor parameter '{param}' has "
            "neither a type annotation nor a default value."
        )
        super().__init__(msg, contract=contract, provider=provider, dependency=param)


class PrimitiveDependency(RegistrationError):
    def __init__(self, contract: type, provider: type, dependency: object) -> None:
        msg = (
            f"{_name(provider)} cannot be registered: it depends on the value type "
            f"{_name(dependency)}, which the container cannot resolve. Use register_factory() instead."
        )
        super().__init__(msg, contract=contract, provider=provider, dependency=dependency)


class UnregisteredDependency(RegistrationError):
    def __init__(self, contract: type, provider: type, dependency: type, scope: Scope) -> None:
        msg = (
            f"{_name(provider)} depends on {_name(dependency)}, which is not registered. "
            f"Register {_name(dependency)} with scope {scope.name} or longer first."
        )
        super().__init__(msg, contract=contract, provider=provider, dependency=dependency, scope=scope)


class AmbiguousDependency(RegistrationError):
    def __init__(self, contract: type, provider: type, dependency: type) -> None:
        msg = (
            f"{_name(provider)} depends on {_name(dependency)}, which has several providers registered. "
            "Remove the extra providers or set `auto_resolve_overloaded_dependencies` to True."
        )
        super().__init__(msg, contract=contract, provider=provider, dependency=dependency)


class DependencyScopeTooShort(RegistrationError):
    def __init__(self, contract: type, provider: type, dependency: type, scope: Scope) -> None:
        msg = (
            f"{_name(provider)} depends on {_name(dependency)}, whose registrations all have a shorter "
            f"lifetime. Register {_name(dependency)} with scope {scope.name} or longer, "
            f"or lower the scope of {_name(provider)}."
        )
        super().__init__(msg, contract=contract, provider=provider, dependency=dependency, scope=scope)


class NonOverwritableStrategy(RegistrationError):
    def __init__(self, contract: type, provider: type) -> None:
        msg = (
            f"A factory is already set to resolve {_name(provider)} for {_name(contract)}. "
            "Pass overwrite_existing=True to replace it."
        )
        super().__init__(msg, contract=contract, provider=provider)


class TypeNotRegistered(ResolutionError):
    def __init__(self, contract: type) -> None:
        super().__init__(f"{_name(contract)} is not registered in the container.", contract=contract)


class NoSuitableScope(ResolutionError):
    def __init__(self, contract: type, scope: Scope) -> None:
        msg = f"{_name(contract)} is registered, but none of its providers has scope {scope.name} or longer."
        super().__init__(msg, contract=contract, scope=scope)


class ExplicitProviderNotRegistered(ResolutionError):
    def __init__(self, contract: type, provider: type) -> None:
        msg = f"{_name(provider)} is not registered to be resolved for {_name(contract)}."
        super().__init__(msg, contract=contract, provider=provider)


class ExplicitProviderUnsuitable(ResolutionError):
    def __init__(self, contract: type, provider: type, scope: Scope) -> None:
        msg = (
            f"{_name(provider)} is registered for {_name(contract)}, but its scope is shorter "
            f"than the requested {scope.name}."
        )
        super().__init__(msg, contract=contract, provider=provider, scope=scope)


class FactoryResultMismatch(ResolutionError, TypeError):
    def __init__(self, contract: type, provider: type, instance: object) -> None:
        msg = (
            f"Factory for {_name(provider)} returned {type(instance).__name__}, "
            f"which does not satisfy {_name(contract)}."
        )
        super().__init__(msg, contract=contract, provider=provider)


class CyclicDependency(ContainerError):
    def __init__(self, path: list[tuple[type, type]]) -> None:
        chain = " -> ".join(f"{_name(c)}[{_name(p)}]" for c, p in path)
        contract, provider = path[-1]
        super().__init__(f"Circular dependency detected: {chain}", contract=contract, provider=provider)
        self.path = path
