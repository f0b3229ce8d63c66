"""Registo de métricas Prometheus do exporter.

``MetricRegistry`` guarda o último valor conhecido de cada métrica e expõe-o
através de um ``CollectorRegistry`` próprio (sem estado global). Todas as
leituras e escritas passam por um único lock; a exposição é gerada a partir
de uma cópia tirada sob esse lock, por isso um scrape nunca vê um grupo de
gauges meio atualizado.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

from ..monitoring.mapper import RideRecord

logger = logging.getLogger(__name__)

NAMESPACE = "velib"
DEFAULT_MAX_RIDES = 50
FETCH_ERRORS = "fetching_errors"

# nome interno -> (nome Prometheus sem namespace, descrição)
GAUGES: dict[str, tuple[str, str]] = {
    "distance_total": ("distance_total", "Distance total in Velib in meters"),
    "distance_electrical": ("distance_electrical", "Distance total in electrical Velib in meters"),
    "distance_mechanical": ("distance_mechanical", "Distance total in mechanical Velib in meters"),
    "trip_number": ("trip_number", "Number of Velib trips"),
    "trip_average_duration": ("trip_average_duration", "Velib trip average duration in minutes"),
    "trip_average_distance": ("trip_average_distance", "Velib trip average distance in meters"),
    "trip_highest_distance": ("trip_highest_distance", "Velib trip highest distance in meters"),
    "total_saved_carbon_dioxide": ("co2_total_saved", "Total CO2 saved by using Velib in grams"),
}

COUNTERS: dict[str, tuple[str, str]] = {
    FETCH_ERRORS: ("fetching_errors", "Counter of errors while scrapping velib-metropole.fr"),
}

RIDE_METRIC = ("trip", "Velib trip details")
RIDE_LABELS = ("start_date", "end_date", "average_speed", "co2_saved_total")


def _prom_name(name: str) -> str:
    return f"{NAMESPACE}_{name}"


def ride_labels(ride: RideRecord) -> tuple[str, str, str, str]:
    """Valores dos labels de uma viagem, na ordem de ``RIDE_LABELS``."""
    return (
        str(ride.start_date),
        str(ride.end_date),
        f"{ride.average_speed:f}",
        f"{ride.saved_carbon_dioxide:f}",
    )


@dataclass
class MetricSnapshot:
    """Cópia consistente do estado do registo."""

    gauges: dict[str, float] = field(default_factory=dict)
    counters: dict[str, float] = field(default_factory=dict)
    # (start_date, end_date) -> (labels, distância)
    rides: dict[tuple[int, int], tuple[tuple[str, ...], float]] = field(default_factory=dict)
    last_success: dict[str, float] = field(default_factory=dict)


class _SnapshotCollector:
    """Collector que converte um MetricSnapshot em famílias Prometheus."""

    def __init__(self, owner: "MetricRegistry"):
        self._owner = owner

    def collect(self):
        snap = self._owner.snapshot()
        for name, (prom, doc) in GAUGES.items():
            yield GaugeMetricFamily(_prom_name(prom), doc, value=snap.gauges.get(name, 0.0))
        for name, (prom, doc) in COUNTERS.items():
            yield CounterMetricFamily(_prom_name(prom), doc, value=snap.counters.get(name, 0.0))

        prom, doc = RIDE_METRIC
        family = GaugeMetricFamily(_prom_name(prom), doc, labels=list(RIDE_LABELS))
        for labels, distance in snap.rides.values():
            family.add_metric(list(labels), distance)
        yield family


class MetricRegistry:
    """Conjunto fixo de gauges/contadores, criado uma vez e mutado no lugar.

    Os nomes aceites são as chaves de ``GAUGES`` e ``COUNTERS``; qualquer outro
    levanta ``KeyError``. As viagens ficam limitadas a ``max_rides`` entradas,
    descartando a de ``start_date`` mais antigo quando o limite é excedido.
    """

    def __init__(self, max_rides: int = DEFAULT_MAX_RIDES):
        if max_rides <= 0:
            raise ValueError("max_rides deve ser > 0")
        self.max_rides = int(max_rides)
        self._lock = threading.Lock()
        self._gauges: dict[str, float] = {name: 0.0 for name in GAUGES}
        self._counters: dict[str, float] = {name: 0.0 for name in COUNTERS}
        self._rides: dict[tuple[int, int], tuple[tuple[str, ...], float]] = {}
        self._last_success: dict[str, float] = {}

        self.registry = CollectorRegistry(auto_describe=False)
        self.registry.register(_SnapshotCollector(self))

    # ========================
    # 1. Escrita
    # ========================

    def set_gauge(self, name: str, value: float) -> None:
        """Sobrescreve o valor de um gauge (last-write-wins)."""
        if name not in self._gauges:
            raise KeyError(name)
        with self._lock:
            self._gauges[name] = float(value)

    def set_gauges(self, values: Mapping[str, float]) -> None:
        """Atualiza vários gauges de uma só vez, sob o mesmo lock."""
        unknown = [name for name in values if name not in self._gauges]
        if unknown:
            raise KeyError(", ".join(sorted(unknown)))
        converted = {name: float(v) for name, v in values.items()}
        with self._lock:
            self._gauges.update(converted)

    def increment_counter(self, name: str = FETCH_ERRORS) -> None:
        """Incrementa um contador em 1."""
        if name not in self._counters:
            raise KeyError(name)
        with self._lock:
            self._counters[name] += 1.0

    def record_ride(self, ride: RideRecord) -> None:
        """Publica uma viagem como gauge com labels; valor = distância."""
        self.record_rides([ride])

    def record_rides(self, rides: Iterable[RideRecord]) -> None:
        """Publica um lote de viagens de forma atómica, respeitando o limite."""
        entries = [(ride.key, (ride_labels(ride), float(ride.distance))) for ride in rides]
        with self._lock:
            for key, entry in entries:
                self._rides[key] = entry
            evicted = 0
            while len(self._rides) > self.max_rides:
                del self._rides[min(self._rides)]
                evicted += 1
        if evicted:
            logger.debug("Descartadas %d viagens antigas (limite %d)", evicted, self.max_rides)

    def mark_success(self, group: str) -> None:
        """Regista o instante da última atualização bem-sucedida de um grupo."""
        with self._lock:
            self._last_success[group] = time.time()

    # ========================
    # 2. Leitura
    # ========================

    def snapshot(self) -> MetricSnapshot:
        with self._lock:
            return MetricSnapshot(
                gauges=dict(self._gauges),
                counters=dict(self._counters),
                rides=dict(self._rides),
                last_success=dict(self._last_success),
            )

    def render(self) -> bytes:
        """Gera o texto de exposição Prometheus do estado atual."""
        return generate_latest(self.registry)
