"""Per-worker CPU usage accounting in timestamp-counter ticks."""

from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class CpuLoad:
    """Working time accumulated since the last usage sample.

    ``init_tsc`` is where the current sampling period started, ``start_tsc``
    where the current stretch of time started and ``work_tsc`` the working
    time collected in this period.
    """

    init_tsc: int = field(default_factory=time.perf_counter_ns)
    start_tsc: int = 0
    work_tsc: int = 0

    def add(self, now_tsc: int, working: bool) -> None:
        """Close the stretch ending at ``now_tsc``, counting it if it was work."""
        if working:
            self.work_tsc += now_tsc - self.start_tsc
        self.start_tsc = now_tsc

    def usage(self, now_tsc: int) -> int:
        """Return the usage in percent for the period ending now and start a new one."""
        total = now_tsc - self.init_tsc
        work = self.work_tsc

        if work <= total:
            work //= 128
            total //= 128
            percent = (work * 100) // total if total else 0
        else:
            percent = 100

        self.init_tsc = now_tsc
        self.start_tsc = now_tsc
        self.work_tsc = 0
        return percent