import pytest

from extfs.process import ProcessState, Scheduler, SemaphoreError, SemaphoreTable


def started(size=4, max_time_count=16):
    sched = Scheduler(size, max_time_count)
    sched.tick()
    return sched


def test_first_tick_leaves_idle_for_user_process():
    sched = Scheduler(4, 16)
    assert sched.current == 0
    assert sched.tick() == 1
    assert sched.processes[1].state == ProcessState.RUNNING
    assert sched.processes[0].state == ProcessState.RUNNABLE


def test_lone_process_keeps_running_past_its_slice():
    max_count = 3
    sched = started(4, max_count)
    results = [sched.tick() for _ in range(max_count * 3)]
    assert results == [1] * len(results)


def test_time_slice_switches_to_child():
    max_count = 3
    sched = started(4, max_count)
    child = sched.fork()
    assert sched.processes[child].state == ProcessState.RUNNABLE
    results = [sched.tick() for _ in range(max_count)]
    assert results == [1] * (max_count - 1) + [child]


def test_fork_fills_table_then_fails():
    sched = started(4)
    pids = [sched.fork(), sched.fork()]
    assert pids == [2, 3]
    with pytest.raises(RuntimeError):
        sched.fork()


def test_sleep_blocks_until_ticks_pass():
    sched = started(4)
    child = sched.fork()
    assert sched.sleep(3) == child
    assert sched.processes[1].state == ProcessState.BLOCKED
    sched.tick()
    sched.tick()
    assert sched.processes[1].state == ProcessState.BLOCKED
    sched.tick()
    assert sched.processes[1].state == ProcessState.RUNNABLE


def test_sleep_zero_keeps_current():
    sched = started(4)
    assert sched.sleep(0) == 1
    assert sched.processes[1].state == ProcessState.RUNNING


def test_negative_sleep_rejected():
    sched = started(4)
    with pytest.raises(ValueError):
        sched.sleep(-1)


def test_exit_falls_back_to_idle():
    sched = started(4)
    assert sched.exit() == 0
    assert sched.processes[1].state == ProcessState.DEAD
    assert sched.processes[0].state == ProcessState.RUNNING


def test_exit_switches_to_other_process():
    sched = started(4)
    child = sched.fork()
    assert sched.exit() == child


def test_block_and_wake():
    sched = started(4)
    sched.block()
    assert sched.processes[1].state == ProcessState.BLOCKED
    for _ in range(5):
        sched.tick()
    assert sched.processes[1].state == ProcessState.BLOCKED
    sched.wake(1)
    assert sched.processes[1].state == ProcessState.RUNNABLE


def test_semaphore_without_blocking():
    sched = started(4)
    sems = SemaphoreTable(sched, 4)
    index = sems.init(1)
    assert sems.wait(index) is False
    assert sems.semaphores[index].value == 0
    assert sched.current == 1


def test_semaphore_blocks_and_post_wakes():
    sched = started(4)
    child = sched.fork()
    sems = SemaphoreTable(sched, 4)
    index = sems.init(0)
    assert sems.wait(index) is True
    assert sched.current == child
    assert sched.processes[1].state == ProcessState.BLOCKED
    assert sems.post(index) == 1
    assert sched.processes[1].state == ProcessState.RUNNABLE
    assert sems.semaphores[index].value == 0


def test_post_without_waiters_counts_up():
    sched = started(4)
    sems = SemaphoreTable(sched, 4)
    index = sems.init(0)
    assert sems.post(index) is None
    assert sems.semaphores[index].value == 1


def test_semaphore_table_full():
    sems = SemaphoreTable(started(4), 4)
    indexes = [sems.init(0) for _ in range(4)]
    assert indexes == list(range(4))
    with pytest.raises(SemaphoreError):
        sems.init(0)


def test_destroyed_semaphore_is_unusable_and_reusable():
    sems = SemaphoreTable(started(4), 4)
    index = sems.init(2)
    sems.destroy(index)
    with pytest.raises(SemaphoreError):
        sems.wait(index)
    assert sems.init(5) == index


@pytest.mark.parametrize("index", [-1, 4])
def test_invalid_semaphore_index(index):
    sems = SemaphoreTable(started(4), 4)
    with pytest.raises(SemaphoreError):
        sems.post(index)