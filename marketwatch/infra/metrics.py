"""Counters and gauges for fetch and poll-cycle instrumentation."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping


@dataclass
class MetricsSink:
    """Collects counters and gauges and optionally mirrors them to a textfile.

    Designed to be passed as ``metrics_callback=sink.observe`` to the retry
    scheduler: each event bumps ``<name>_total`` and records every numeric
    value as a ``<name>_<key>`` gauge.
    """

    prefix: str = "marketwatch"
    counters: Dict[str, int] = field(default_factory=dict)
    gauges: Dict[str, float] = field(default_factory=dict)
    metrics_file: Path = Path("var/metrics.prom")
    emit_textfile: bool = False
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("marketwatch.metrics"))
    _lock: threading.Lock = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self.metrics_file = Path(self.metrics_file)

    def incr(self, name: str, value: int = 1) -> None:
        with self._lock:
            key = self._key(name)
            self.counters[key] = self.counters.get(key, 0) + value
            self._persist_unlocked()

    def observe(self, name: str, values: Mapping[str, Any]) -> None:
        """Record an event, incrementing a counter and updating gauges."""

        with self._lock:
            counter = self._key(f"{name}_total")
            self.counters[counter] = self.counters.get(counter, 0) + 1
            for key, value in values.items():
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    self.gauges[self._key(f"{name}_{key}")] = float(value)
            self._persist_unlocked()
        self.logger.debug(name, extra={"event": f"metric_{name}", **dict(values)})

    def export(self) -> Dict[str, float | int]:
        """Return a merged view of all current metrics."""

        with self._lock:
            return {**self.counters, **self.gauges}

    def render_prometheus(self) -> str:
        with self._lock:
            return self._render_prom_text()

    def _key(self, name: str) -> str:
        return f"{self.prefix}_{name}" if self.prefix else name

    def _persist_unlocked(self) -> None:
        if not self.emit_textfile:
            return
        try:
            self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.metrics_file.with_suffix(".tmp")
            temp_path.write_text(self._render_prom_text(), encoding="utf-8")
            os.replace(temp_path, self.metrics_file)
        except OSError as exc:
            self.logger.warning("Could not write metrics textfile %s: %s", self.metrics_file, exc)

    def _render_prom_text(self) -> str:
        lines = []
        for name, value in sorted(self.counters.items()):
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name} {int(value)}")
        for name, value in sorted(self.gauges.items()):
            lines.append(f"# TYPE {name} gauge")
            lines.append(f"{name} {float(value)}")
        return "\n".join(lines) + "\n"


__all__ = ["MetricsSink"]
