from dperf.cpuload import CpuLoad


def test_idle_period_is_zero_percent():
    load = CpuLoad(init_tsc=1000)
    assert load.usage(1000 + 128 * 50) == 0


def test_half_busy_period():
    load = CpuLoad(init_tsc=0, start_tsc=0)
    load.add(640, True)
    load.add(1280, False)
    assert load.work_tsc == 640
    assert load.usage(1280) == 50


def test_work_beyond_period_is_capped():
    load = CpuLoad(init_tsc=100, start_tsc=0)
    load.add(10_000, True)
    assert load.usage(200) == 100


def test_usage_resets_the_period():
    load = CpuLoad(init_tsc=0, start_tsc=0)
    load.add(5000, True)
    load.usage(9000)
    assert load.init_tsc == 9000
    assert load.start_tsc == 9000
    assert load.work_tsc == 0


def test_add_without_work_only_moves_start():
    load = CpuLoad(init_tsc=0, start_tsc=10, work_tsc=7)
    load.add(500, False)
    assert load.start_tsc == 500
    assert load.work_tsc == 7


def test_fully_busy_period_is_full():
    load = CpuLoad(init_tsc=0, start_tsc=0)
    load.add(128 * 40, True)
    assert load.usage(128 * 40) == 100


def test_usage_is_within_bounds():
    load = CpuLoad(init_tsc=0, start_tsc=0)
    now = 0
    for step in range(1, 20):
        now += step * 300
        load.add(now, step % 3 == 0)
    assert 0 <= load.usage(now) <= 100