from __future__ import annotations

import inspect
import logging
import numbers
import types
import typing
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, Union, cast, get_args, get_origin, get_type_hints

from ._errors import (
    AmbiguousConstructor,
    AmbiguousDependency,
    CyclicDependency,
    DependencyArityMismatch,
    DependencyScopeTooShort,
    PrimitiveDependency,
    UnannotatedDependency,
    UnassignableProvider,
    UnregisteredDependency,
)
from ._registry import Dependency, ProviderDescriptor, Registration


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._registry import Registry
    from ._scope import Scope


_VARIADIC = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


def require_class(token: object, role: str) -> None:
    if not inspect.isclass(token):
        msg = f"The {role} must be a class, got {token!r}"
        raise ValueError(msg)


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and issubclass(tp, cast("type", Protocol)) and getattr(tp, "_is_protocol", False)


def is_injectable(annotation: object) -> bool:
    """Whether a container can supply values of this annotation.

    Builtins (int, str, list, ...), enums and numbers are values, not services.
    """
    if not inspect.isclass(annotation):
        return False
    if getattr(annotation, "__module__", "") == "builtins":
        return False
    return not issubclass(annotation, (Enum, numbers.Number))


def unwrap_optional(annotation: object) -> object:
    if get_origin(annotation) in (Union, types.UnionType):
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _get_init_type_hints(cls: type) -> dict[str, Any]:
    try:
        init = inspect.getattr_static(cls, "__init__")
        hints = get_type_hints(init)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
        hints = {}

    return hints


class Validator:
    """Registration-time checks. Every check raises before anything is committed."""

    def __init__(self, registry: Registry, auto_resolve_overloads: Callable[[], bool]) -> None:
        self._registry = registry
        self._auto_resolve_overloads = auto_resolve_overloads

    # -- assignability ----------------------------------------------------

    def check_assignable(self, contract: type, provider: type) -> None:
        """Validate that instances of `provider` satisfy `contract`.

        - For normal classes/ABCs: require issubclass(provider, contract).
        - For Protocols: accept nominal subclassing (via the MRO), otherwise
          check members, positional arity and return annotations.
        """
        if not is_protocol(contract):
            if not issubclass(provider, contract):
                raise UnassignableProvider(contract, provider, f"not a subclass of {contract.__name__}")
            return

        if contract in getattr(provider, "__mro__", ()):
            return

        problems = structural_mismatches(contract, provider)
        if problems:
            raise UnassignableProvider(contract, provider, "; ".join(problems))

    def instance_satisfies(self, contract: type, instance: object) -> bool:
        if instance is None:
            return False
        if not is_protocol(contract):
            return isinstance(instance, contract)
        return contract in type(instance).__mro__ or not structural_mismatches(contract, type(instance))

    # -- constructor shape ------------------------------------------------

    def describe(self, contract: type, provider: type) -> ProviderDescriptor:
        """Build the provider descriptor from the signature of `provider.__init__`.

        A parameter with a default is injected only when its annotation is a
        registered contract; otherwise the default applies.
        """
        if inspect.isabstract(provider) or is_protocol(provider):
            raise UnassignableProvider(contract, provider, "abstract classes cannot be constructed")

        init = inspect.getattr_static(provider, "__init__", None)
        if inspect.isfunction(init) and len(typing.get_overloads(init)) > 1:
            raise AmbiguousConstructor(contract, provider)

        try:
            sig = inspect.signature(provider)
        except (TypeError, ValueError):
            return ProviderDescriptor()

        hints = _get_init_type_hints(provider)
        deps: list[Dependency] = []
        # once a positional-only default is skipped, later ones cannot be passed either
        posonly_gap = False
        for name, p in sig.parameters.items():
            if p.kind in _VARIADIC:
                continue

            posonly = p.kind is inspect.Parameter.POSITIONAL_ONLY
            has_default = p.default is not inspect.Parameter.empty
            ann = unwrap_optional(hints.get(name, inspect.Parameter.empty))

            if ann is inspect.Parameter.empty:
                skip = has_default
                if not skip:
                    raise UnannotatedDependency(contract, provider, name)
            elif not is_injectable(ann):
                skip = has_default
                if not skip:
                    raise PrimitiveDependency(contract, provider, ann)
            else:
                skip = has_default and (posonly_gap or not self._registry.has_registration(ann))

            if skip:
                posonly_gap = posonly_gap or posonly
                continue

            deps.append(Dependency(name, ann, positional=posonly))

        return ProviderDescriptor(tuple(deps))

    def check_explicit(self, contract: type, provider: type, descriptor: ProviderDescriptor) -> None:
        for dep in descriptor.dependencies:
            if not is_injectable(dep.contract):
                raise PrimitiveDependency(contract, provider, dep.contract)

        try:
            sig = inspect.signature(provider)
        except (TypeError, ValueError):
            return
        count = len(descriptor.dependencies)
        try:
            sig.bind(*[object()] * count)
        except TypeError as e:
            raise DependencyArityMismatch(contract, provider, count, str(e)) from e

    # -- dependency graph -------------------------------------------------

    def check_dependencies(self, contract: type, provider: type, scope: Scope, descriptor: ProviderDescriptor) -> None:
        for dep in descriptor.contracts:
            registered = self._registry.providers(dep)
            if not registered:
                raise UnregisteredDependency(contract, provider, dep, scope)

            if len(registered) > 1 and not self._auto_resolve_overloads():
                raise AmbiguousDependency(contract, provider, dep)

            if not any(reg.scope >= scope for _, reg in registered):
                raise DependencyScopeTooShort(contract, provider, dep, scope)

        self.check_cycles(contract, provider, scope, descriptor)

    def check_cycles(self, contract: type, provider: type, scope: Scope, descriptor: ProviderDescriptor) -> None:
        """Walk the graph resolution would follow, with the pending pair included.

        Dependencies must be registered before their dependents, so a registry
        filled only through `Container.register` never holds a cycle and this
        walk finds none. It guards registries populated through
        `Registry.add` directly, where the pending pair may be the missing
        link; cycles closed at runtime by factories are caught during
        resolution instead.
        """
        pending = Registration(scope=scope, descriptor=descriptor)

        def select(dep: type, min_scope: Scope) -> tuple[type, Registration] | None:
            found = self._registry.first_suitable(dep, min_scope)
            if found is None and dep is contract and scope >= min_scope:
                return provider, pending
            return found

        path: list[tuple[type, type]] = []
        done: set[tuple[type, type]] = set()

        def walk(key: tuple[type, type], reg: Registration) -> None:
            path.append(key)
            for dep in reg.descriptor.contracts if reg.descriptor else ():
                selected = select(dep, reg.scope)
                if selected is None:
                    continue
                nxt = (dep, selected[0])
                if nxt in path:
                    raise CyclicDependency([*path[path.index(nxt) :], nxt])
                if nxt not in done:
                    walk(nxt, selected[1])
            path.pop()
            done.add(key)

        walk((contract, provider), pending)

    def check_scope_transition(self, contract: type, provider: type, new_scope: Scope) -> None:
        """Re-check dependents of `contract` as if (contract, provider) had `new_scope`."""
        scopes = [new_scope if p is provider else reg.scope for p, reg in self._registry.providers(contract)]
        longest = max(scopes, default=new_scope)
        for owner, dependent, reg in self._registry.dependents_of(contract):
            if longest < reg.scope:
                raise DependencyScopeTooShort(owner, dependent, contract, reg.scope)


def structural_mismatches(proto_cls: type, impl: type) -> list[str]:  # noqa: C901
    """Best-effort structural conformance: presence + basic callable arity + return type checks."""
    missing: list[str] = []
    mismatches: list[str] = []

    try:
        proto_hints = get_type_hints(proto_cls, include_extras=True)
    except (TypeError, NameError):
        proto_hints = {}

    for name in proto_hints:
        if not name.startswith("_") and not hasattr(impl, name):
            missing.append(name)

    for name, proto_attr in proto_cls.__dict__.items():
        if name.startswith("_") or not inspect.isfunction(proto_attr):
            continue

        if not hasattr(impl, name):
            missing.append(name)
            continue

        impl_attr = getattr(impl, name)
        if not callable(impl_attr):
            mismatches.append(f"{name} is not callable on {impl.__name__}")
            continue

        try:
            proto_sig = inspect.signature(proto_attr)
            impl_sig = inspect.signature(impl_attr)
        except (TypeError, ValueError) as e:
            mismatches.append(f"{name}: unable to compare signatures ({e})")
            continue

        want, have = _required_positional(proto_sig), _required_positional(impl_sig)
        if have < want:
            mismatches.append(f"{name} takes {have} required positional argument(s), expected {want}")

        proto_ret, impl_ret = proto_sig.return_annotation, impl_sig.return_annotation
        if inspect.Signature.empty in (proto_ret, impl_ret) or Any in (proto_ret, impl_ret):
            continue
        if not _is_return_type_compatible(impl_ret, proto_ret):
            mismatches.append(f"{name} returns {impl_ret!r}, expected {proto_ret!r}")

    problems = []
    if missing:
        problems.append(f"missing members: {', '.join(missing)}")
    problems.extend(mismatches)
    return problems


def _required_positional(sig: inspect.Signature) -> int:
    return sum(
        1
        for p in sig.parameters.values()
        if p.name != "self"
        and p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and p.default is inspect.Parameter.empty
    )


def _is_return_type_compatible(impl_ret: object, proto_ret: object) -> bool:
    if impl_ret == proto_ret:
        return True

    if isinstance(impl_ret, type) and isinstance(proto_ret, type):
        return issubclass(impl_ret, proto_ret)

    # Union, Protocol, TypeVar, string annotations: be conservative
    return False
