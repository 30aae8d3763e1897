import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from scaffolding import Clock, ClockedGreeter, FrozenClock, Greeter, SlowClock

from scopebind import Container, DuplicateRegistration, Scope


N_THREADS = 8


def _resolve_together(c: Container, contract: type) -> list[object]:
    barrier = threading.Barrier(N_THREADS)

    def work(_):
        barrier.wait()
        return c.resolve(contract)

    with ThreadPoolExecutor(max_workers=N_THREADS) as pool:
        return list(pool.map(work, range(N_THREADS)))


@pytest.mark.parametrize("scope", [Scope.MANAGED, Scope.SINGLETON])
def test_concurrent_first_resolution_hands_out_one_instance(scope):
    SlowClock.created = 0
    c = Container()
    c.register(Clock, SlowClock, scope)

    results = _resolve_together(c, Clock)

    assert len({id(r) for r in results}) == 1
    assert SlowClock.created == 1
    assert c.cached_instance_count == 1
    assert all(r is c.resolve(Clock) for r in results)


def test_concurrent_first_resolution_runs_factory_once():
    c = Container()
    calls = []

    def build(_):
        calls.append(threading.current_thread())
        return SlowClock()

    c.register_factory(Clock, SlowClock, build, Scope.SINGLETON)

    results = _resolve_together(c, Clock)

    assert len(calls) == 1
    assert all(r is results[0] for r in results)


def test_threads_building_different_pairs_do_not_wait_on_each_other():
    c = Container()
    started = threading.Barrier(2, timeout=5)

    def build(_):
        # both builds must be in progress at the same time to get past the barrier
        started.wait()
        return SlowClock()

    c.register_factory(Clock, SlowClock, build, Scope.SINGLETON)
    c.register_factory(Clock, FrozenClock, build, Scope.SINGLETON)

    with ThreadPoolExecutor(max_workers=2) as pool:
        slow = pool.submit(c.resolve_explicit, Clock, SlowClock)
        frozen = pool.submit(c.resolve_explicit, Clock, FrozenClock)
        assert slow.result() is not frozen.result()


def test_concurrent_resolution_of_graph_shares_singleton_dependency():
    c = Container()
    c.register(Clock, SlowClock, Scope.SINGLETON)
    c.register(Greeter, ClockedGreeter, Scope.VOLATILE)

    greeters = _resolve_together(c, Greeter)

    assert len({id(g) for g in greeters}) == N_THREADS
    assert len({id(g.clock) for g in greeters}) == 1


def test_concurrent_registration_of_same_pair_succeeds_once():
    c = Container()
    barrier = threading.Barrier(N_THREADS)
    errors = []

    def work(_):
        barrier.wait()
        try:
            c.register(Clock, SlowClock)
        except DuplicateRegistration as e:
            errors.append(e)

    with ThreadPoolExecutor(max_workers=N_THREADS) as pool:
        list(pool.map(work, range(N_THREADS)))

    assert c.registered_count == 1
    assert len(errors) == N_THREADS - 1


def test_resolution_path_is_per_thread():
    c = Container()
    c.register(Clock, SlowClock, Scope.VOLATILE)
    calls = []
    seen = []

    def build(cont):
        calls.append(threading.current_thread())
        if len(calls) == 1:
            # the same pair resolved on another thread is not a cycle
            t = threading.Thread(target=lambda: seen.append(cont.resolve(Greeter)))
            t.start()
            t.join()
        return ClockedGreeter(cont.resolve(Clock))

    c.register_factory(Greeter, ClockedGreeter, build)

    greeter = c.resolve(Greeter)

    assert isinstance(greeter.clock, SlowClock)
    assert len(seen) == 1
    assert seen[0] is not greeter
