"""Sharing the client's connection targets between worker threads."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from dperf.options import DEFAULT_LAUNCH, DEFAULT_LAUNCH_MAX, DEFAULT_LAUNCH_MIN, Config

log = logging.getLogger(__name__)


@dataclass
class ClientLaunch:
    """How one worker opens new connections: how many, and how often in ticks."""

    cc: int = 0
    launch_num: int = 0
    launch_interval: int = 0
    launch_interval_default: int = 0
    launch_next: int = 0


def assign_task(worker_id: int, cpu_num: int, target: int) -> int:
    """Return the part of ``target`` worker ``worker_id`` takes; worker 0 takes the rest."""
    if target <= cpu_num:
        return 1 if worker_id < target else 0
    share = int(float(target) / cpu_num)
    if worker_id == 0:
        share = target - share * (cpu_num - 1)
    return share


def client_init(cfg: Config, worker_id: int, tsc_per_second: int, now_tsc: int) -> Optional[ClientLaunch]:
    """Plan the launches of one worker; return None for a worker with nothing to do.

    Picks ``cfg.launch_num`` when it is still unset.
    """
    cps = assign_task(worker_id, cfg.cpu_num, cfg.cps)
    cc = assign_task(worker_id, cfg.cpu_num, cfg.cc)

    if cps == 0:
        return None

    if cfg.launch_num == 0:
        divisors = [n for n in range(DEFAULT_LAUNCH_MIN, DEFAULT_LAUNCH_MAX + 1) if cps % n == 0]
        cfg.launch_num = divisors[0] if divisors else DEFAULT_LAUNCH

    if cps > cfg.launch_num and cps % cfg.launch_num != 0:
        log.warning("launch_num(%d) is not divisible by cps(%d)", cfg.launch_num, cps)

    launch = ClientLaunch(cc=cc)
    if cps <= cfg.launch_num:
        launch.launch_num = cps
        launch.launch_interval = tsc_per_second
    else:
        launch.launch_num = cfg.launch_num
        launch.launch_interval = tsc_per_second // (cps // launch.launch_num)
    launch.launch_interval_default = launch.launch_interval
    launch.launch_next = now_tsc + tsc_per_second * cfg.wait
    return launch