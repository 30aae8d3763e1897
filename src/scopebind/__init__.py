"""Scoped service container.

This package binds abstract contracts (classes, ABCs, protocols) to concrete
providers, validates the dependency graph when services are registered, and
resolves instances on demand while enforcing lifetimes between dependents and
their dependencies.

Exports:
- `Container`: registers providers or factories and resolves instances.
- `Scope`: ordered lifetimes (volatile < managed < singleton).
- `ProviderDescriptor` / `Dependency`: the constructor dependencies of a provider.
- The `ContainerError` hierarchy raised by registration and resolution.
"""

from ._container import Container
from ._errors import (
    AmbiguousConstructor,
    AmbiguousDependency,
    ContainerError,
    CyclicDependency,
    DependencyArityMismatch,
    DependencyScopeTooShort,
    DuplicateRegistration,
    ExplicitProviderNotRegistered,
    ExplicitProviderUnsuitable,
    FactoryResultMismatch,
    NonOverwritableStrategy,
    NoSuitableScope,
    PrimitiveDependency,
    RegistrationError,
    ResolutionError,
    TypeNotRegistered,
    UnannotatedDependency,
    UnassignableProvider,
    UnregisteredDependency,
)
from ._registry import Dependency, ProviderDescriptor
from ._scope import Scope


__all__ = [
    "AmbiguousConstructor",
    "AmbiguousDependency",
    "Container",
    "ContainerError",
    "CyclicDependency",
    "Dependency",
    "DependencyArityMismatch",
    "DependencyScopeTooShort",
    "DuplicateRegistration",
    "ExplicitProviderNotRegistered",
    "ExplicitProviderUnsuitable",
    "FactoryResultMismatch",
    "NoSuitableScope",
    "NonOverwritableStrategy",
    "PrimitiveDependency",
    "ProviderDescriptor",
    "RegistrationError",
    "ResolutionError",
    "Scope",
    "TypeNotRegistered",
    "UnannotatedDependency",
    "UnassignableProvider",
    "UnregisteredDependency",
]
