import unittest

import pytest
from scaffolding import Clock, ClockedGreeter, FrozenClock, Greeter, SmtpMailer, SystemClock

from scopebind import (
    Container,
    FactoryResultMismatch,
    NonOverwritableStrategy,
    Scope,
    UnassignableProvider,
)


def test_register_service_with_factory():
    c = Container()

    c.register_factory(Greeter, ClockedGreeter, lambda _: ClockedGreeter(SystemClock()), Scope.SINGLETON)

    assert c.registered_count == 1
    assert isinstance(c.resolve(Greeter).clock, SystemClock)


def test_factory_receives_container():
    c = Container()
    seen = []

    def make_clock(cont):
        seen.append(cont)
        return FrozenClock()

    c.register_factory(Clock, FrozenClock, make_clock)
    c.resolve(Clock)

    assert seen == [c]


@pytest.mark.parametrize("scope", list(Scope))
def test_factory_dependency_feeds_automatic_construction(scope):
    c = Container()
    c.register_factory(Clock, SystemClock, lambda _: SystemClock(), scope)
    c.register(Greeter, ClockedGreeter, scope)

    assert isinstance(c.resolve(Greeter, scope).clock, SystemClock)


def test_factory_may_resolve_other_services():
    c = Container()
    c.register(Clock, FrozenClock, Scope.SINGLETON)
    c.register_factory(Greeter, ClockedGreeter, lambda cont: ClockedGreeter(cont.resolve(Clock)), Scope.SINGLETON)

    greeter = c.resolve(Greeter)

    assert greeter.clock is c.resolve(Clock)


def test_factory_provider_must_satisfy_contract():
    c = Container()

    with pytest.raises(UnassignableProvider):
        c.register_factory(Clock, SmtpMailer, lambda _: SmtpMailer())


def test_factory_result_not_satisfying_contract_raises():
    c = Container()
    c.register_factory(Clock, SystemClock, lambda _: object())

    with pytest.raises(FactoryResultMismatch) as ctx:
        c.resolve(Clock)

    assert isinstance(ctx.value, TypeError)
    assert "object" in str(ctx.value)


@pytest.mark.parametrize("scope", list(Scope))
def test_factory_returning_none_registers_but_fails_on_resolve(scope):
    c = Container()
    c.register_factory(Clock, SystemClock, lambda _: None, scope)

    assert c.has_registration(Clock, SystemClock)
    with pytest.raises(FactoryResultMismatch) as ctx:
        c.resolve(Clock)

    assert "NoneType" in str(ctx.value)
    assert c.cached_instance_count == 0


def test_non_callable_factory_raises_value_error():
    c = Container()

    with pytest.raises(ValueError):
        c.register_factory(Clock, SystemClock, SystemClock())


class TestStrategyOverwrite(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_second_factory_without_overwrite_raises(self):
        self.cont.register_factory(Clock, SystemClock, lambda _: None)

        with pytest.raises(NonOverwritableStrategy) as ctx:
            self.cont.register_factory(Clock, SystemClock, lambda _: SystemClock())

        assert ctx.value.contract is Clock
        assert "overwrite_existing" in str(ctx.value)

        self.cont.register_factory(Clock, SystemClock, lambda _: SystemClock(), overwrite_existing=True)

        assert self.cont.registered_count == 1

    def test_overwritten_factory_is_used_and_cache_dropped(self):
        first, second = SystemClock(), SystemClock()
        self.cont.register_factory(Clock, SystemClock, lambda _: first, Scope.SINGLETON)
        assert self.cont.resolve(Clock) is first

        self.cont.register_factory(Clock, SystemClock, lambda _: second, Scope.SINGLETON, overwrite_existing=True)

        assert self.cont.resolve(Clock) is second

    def test_factory_replaces_automatic_construction_for_registered_pair(self):
        self.cont.register(Clock, SystemClock, Scope.SINGLETON)
        auto = self.cont.resolve(Clock)
        built = SystemClock()

        self.cont.register_factory(Clock, SystemClock, lambda _: built, Scope.SINGLETON)

        assert self.cont.resolve(Clock) is built
        assert self.cont.resolve(Clock) is not auto
        assert self.cont.registered_count == 1


class TestRegisterInstance(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_register_instance_is_always_singleton(self):
        inst = SystemClock()
        self.cont.register_instance(Clock, inst)

        assert self.cont.resolve(Clock) is inst
        assert self.cont.resolve(Clock, Scope.SINGLETON) is inst
        assert self.cont.scope_of(Clock, SystemClock) is Scope.SINGLETON

    def test_register_instance_twice_without_replace_raises(self):
        self.cont.register_instance(Clock, SystemClock())

        with pytest.raises(NonOverwritableStrategy):
            self.cont.register_instance(Clock, SystemClock())

    def test_register_instance_with_replace_substitutes_instance(self):
        a1, a2 = SystemClock(), SystemClock()
        self.cont.register_instance(Clock, a1)
        assert self.cont.resolve(Clock) is a1

        self.cont.register_instance(Clock, a2, replace=True)

        assert self.cont.resolve(Clock) is a2
        assert self.cont.registered_count == 1

    def test_register_instance_of_wrong_type_raises(self):
        with pytest.raises(UnassignableProvider):
            self.cont.register_instance(Clock, SmtpMailer())

    def test_registered_instance_survives_recycle(self):
        inst = SystemClock()
        self.cont.register_instance(Clock, inst)
        self.cont.resolve(Clock)

        self.cont.recycle_managed()

        assert self.cont.cached_instance_count == 1
        assert self.cont.resolve(Clock) is inst
