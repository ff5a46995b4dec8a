import threading

from featchain.services.games import EntityLocks, TurnScheduler


def test_schedule_replaces_previous_timer(scheduler):
    fired = []
    first = scheduler.schedule('g1', 1, 1_010.0, lambda eid, epoch: fired.append((eid, epoch)))
    second = scheduler.schedule('g1', 2, 1_020.0, lambda eid, epoch: fired.append((eid, epoch)))
    assert not first.is_current()
    assert second.is_current()
    assert first.fire() is None
    scheduler.fire_due(now=1_030.0)
    assert fired == [('g1', 2)]
    assert scheduler.pending('g1') is None


def test_fire_due_ignores_future_timers(scheduler):
    fired = []
    scheduler.schedule('g1', 1, 1_010.0, lambda eid, epoch: fired.append(eid))
    scheduler.schedule('g2', 1, 1_050.0, lambda eid, epoch: fired.append(eid))
    scheduler.fire_due(now=1_020.0)
    assert fired == ['g1']
    assert scheduler.pending('g2') is not None


def test_cancelled_timer_never_fires(scheduler):
    fired = []
    timer = scheduler.schedule('g1', 1, 1_010.0, lambda eid, epoch: fired.append(eid))
    scheduler.cancel('g1')
    assert not timer.is_current()
    assert scheduler.fire_due(now=2_000.0) == []
    assert fired == []


def test_worker_sleeps_until_deadline(clock):
    tasks = []
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        clock.advance(seconds)

    scheduler = TurnScheduler(start_task=lambda fn, *args: tasks.append((fn, args)), sleep=sleep,
                              clock=clock, heartbeat=10)
    fired = []
    scheduler.schedule('r1', 3, clock() + 25, lambda eid, epoch: fired.append(epoch))
    fn, args = tasks[0]
    fn(*args)
    assert sleeps == [10, 10, 5]
    assert fired == [3]


def test_worker_exits_when_superseded(clock):
    tasks = []
    scheduler = TurnScheduler(start_task=lambda fn, *args: tasks.append((fn, args)),
                              sleep=lambda seconds: None, clock=clock)
    fired = []
    scheduler.schedule('r1', 1, clock() + 30, lambda eid, epoch: fired.append(epoch))
    scheduler.schedule('r1', 2, clock() + 30, lambda eid, epoch: fired.append(epoch))
    fn, args = tasks[0]
    fn(*args)
    assert fired == []
    assert scheduler.pending('r1').epoch == 2


def test_entity_lock_non_blocking_hold():
    locks = EntityLocks()
    inside = threading.Event()
    release = threading.Event()
    results = []

    def holder():
        with locks.hold('g1') as acquired:
            results.append(acquired)
            inside.set()
            release.wait(timeout=5)

    thread = threading.Thread(target=holder)
    thread.start()
    inside.wait(timeout=5)
    with locks.hold('g1', blocking=False) as acquired:
        results.append(acquired)
    with locks.hold('g2', blocking=False) as acquired:
        results.append(acquired)
    release.set()
    thread.join(timeout=5)
    assert results == [True, False, True]
