import threading

import pytest

from poolclock.services.clocks import GameRegistry, TickScheduler
from poolclock.services.clocks.fanout import QueueSubscriber

MASTER = 'master-secret'


@pytest.fixture()
def reg():
    return GameRegistry(master_key=MASTER)


@pytest.fixture()
def ticker(reg):
    return TickScheduler(reg)


def test_shot_clock_expires_after_sixty_ticks(reg, ticker):
    reg.create('T1')
    reg.start('T1', MASTER)
    for _ in range(65):
        assert ticker.fire() is True
    state = reg.status('T1')
    assert state.shot_time_left == 0
    assert state.running is False
    # The game clock stops with play once the shot clock expires
    assert state.game_time_left == 1200 - 60


def test_sixty_five_ticks_with_shot_resets(reg, ticker):
    reg.create('T1')
    reg.start('T1', MASTER)
    for n in range(65):
        ticker.fire()
        if n == 30:
            reg.reset_shot('T1', MASTER)
    state = reg.status('T1')
    assert state.running is True
    assert state.game_time_left == 1135
    assert state.shot_time_left == 60 - 34


def test_idle_clocks_do_not_tick(reg, ticker):
    reg.create('T1')
    ticker.fire()
    assert reg.status('T1').shot_time_left == 60
    assert reg.status('T1').game_time_left == 1200


def test_fire_broadcasts_every_game(reg, ticker):
    reg.create('T1')
    reg.create('T2')
    reg.start('T1', MASTER)
    sub1, sub2 = QueueSubscriber('T1'), QueueSubscriber('T2')
    reg.subscribe('T1', sub1)
    reg.subscribe('T2', sub2)
    sub1.pending()
    sub2.pending()

    ticker.fire()

    assert sub1.pending() == [('clock', {'gameId': 'T1', 'shotTimeLeft': 59, 'gameTimeLeft': 1199, 'running': True})]
    assert sub2.pending() == [('clock', {'gameId': 'T2', 'shotTimeLeft': 60, 'gameTimeLeft': 1200, 'running': False})]


def test_games_tick_independently(reg, ticker):
    reg.create('T1')
    reg.create('T2')
    reg.start('T1', MASTER)
    for _ in range(10):
        ticker.fire()
    reg.start('T2', MASTER)
    reg.stop('T1', MASTER)
    for _ in range(5):
        ticker.fire()
    assert reg.status('T1').shot_time_left == 50
    assert reg.status('T2').shot_time_left == 55


def test_expiry_frame_shows_stopped_clock(reg, ticker):
    reg.create('T1')
    reg.start('T1', MASTER)
    sub = QueueSubscriber('T1', maxsize=100)
    reg.subscribe('T1', sub)
    sub.pending()
    for _ in range(60):
        ticker.fire()
    frames = [p for _, p in sub.pending()]
    assert frames[-2]['shotTimeLeft'] == 1 and frames[-2]['running'] is True
    assert frames[-1]['shotTimeLeft'] == 0 and frames[-1]['running'] is False


def test_broken_subscriber_does_not_stop_other_games(reg, ticker):
    reg.create('T1')
    reg.create('T2')
    reg.start('T1', MASTER)
    reg.start('T2', MASTER)
    slow = QueueSubscriber('T1', maxsize=1)
    reg.subscribe('T1', slow)
    healthy = QueueSubscriber('T2', maxsize=100)
    reg.subscribe('T2', healthy)

    ticker.fire()
    ticker.fire()

    assert len(reg.get('T1').subscribers) == 0
    assert reg.status('T1').shot_time_left == 58
    assert reg.status('T2').shot_time_left == 58
    assert len(healthy.pending()) == 3


def test_deferred_resume_runs_through_ticks(reg, ticker):
    reg.create('T1')
    reg.start('T1', MASTER)
    ticker.fire()
    reg.reset_shot('T1', MASTER, resume_after=2)
    ticker.fire()
    assert reg.status('T1').running is False
    ticker.fire()
    state = reg.status('T1')
    assert state.running is True
    assert state.shot_time_left == 60
    ticker.fire()
    assert reg.status('T1').shot_time_left == 59


def test_deferred_resume_superseded_by_stop(reg, ticker):
    reg.create('T1')
    reg.reset_shot('T1', MASTER, resume_after=2)
    reg.stop('T1', MASTER)
    for _ in range(4):
        ticker.fire()
    assert reg.status('T1').running is False


def test_overlapping_fire_is_skipped(reg, ticker):
    reg.create('T1')
    reg.start('T1', MASTER)
    ticker._firing.acquire()
    try:
        assert ticker.fire() is False
    finally:
        ticker._firing.release()
    assert ticker.skipped == 1
    assert reg.status('T1').shot_time_left == 60


def test_fire_skips_deleted_game(reg, ticker):
    reg.create('T1')
    reg.start('T1', MASTER)
    entry = reg.get('T1')
    reg.delete('T1', MASTER)
    ticker.fire()
    assert entry.clock.shot_time_left == 60


class FakeTime:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_run_fires_once_per_interval(reg, ticker):
    reg.create('T1')
    reg.start('T1', MASTER)
    fake = FakeTime()
    ticker.run(sleep=fake.sleep, clock=fake.clock, max_firings=5)
    assert ticker.fired == 5
    assert fake.sleeps == [1.0] * 5
    assert reg.status('T1').shot_time_left == 55


def test_run_drops_missed_slots(reg, ticker):
    fake = FakeTime()
    original_fire = ticker.fire

    def slow_fire():
        fake.now += 2.5
        return original_fire()

    ticker.fire = slow_fire
    ticker.run(sleep=fake.sleep, clock=fake.clock, max_firings=2)
    assert ticker.fired == 2
    # t=1 fire ends at 3.5; slots 2 and 3 are dropped, next firing at 4
    assert fake.sleeps == [1.0, 0.5]
    assert ticker.skipped == 2


def test_stop_ends_loop(reg, ticker):
    fake = FakeTime()

    def sleep(seconds):
        fake.sleep(seconds)
        if len(fake.sleeps) == 3:
            ticker.stop()

    ticker.run(sleep=sleep, clock=fake.clock)
    assert ticker.fired == 2


class RecordingSocketIO:
    def __init__(self):
        self.tasks = []

    def start_background_task(self, target, *args, **kwargs):
        self.tasks.append((target, args, kwargs))
        return object()

    def sleep(self, seconds):
        pass


def test_restart_while_sleeping_leaves_one_loop(reg, ticker):
    reg.create('T1')
    reg.start('T1', MASTER)
    sio = RecordingSocketIO()
    fake = FakeTime()
    ticker.start(sio)
    first_loop, _, first_kwargs = sio.tasks[0]

    def sleep(seconds):
        fake.sleep(seconds)
        # stop and restart while the first loop is between firings
        ticker.stop()
        ticker.start(sio)

    first_loop(sleep=sleep, clock=fake.clock, stopped=first_kwargs['stopped'])

    assert ticker.fired == 0
    assert reg.status('T1').shot_time_left == 60
    assert len(sio.tasks) == 2
    assert first_kwargs['stopped'].is_set()
    assert not sio.tasks[1][2]['stopped'].is_set()
    assert ticker.running is True
    ticker.stop()
    assert ticker.running is False


def test_scheduler_not_started_in_testing(flask_app, scheduler):
    assert scheduler.running is False


def test_concurrent_fire_and_control(reg, ticker):
    reg.create('T1')
    reg.start('T1', MASTER)
    done = threading.Event()

    def toggler():
        while not done.is_set():
            reg.stop('T1', MASTER)
            reg.start('T1', MASTER)

    t = threading.Thread(target=toggler)
    t.start()
    try:
        for _ in range(30):
            ticker.fire()
    finally:
        done.set()
        t.join()
    state = reg.status('T1')
    assert 0 <= state.shot_time_left <= 60
    assert state.game_time_left == 1200 - (60 - state.shot_time_left)
