"""Tests for MetricRegistry: gauges, error counter, ride cap and consistent exposition."""

import threading

import pytest

from velib_exporter.exporter import registry as registry_mod
from velib_exporter.exporter.registry import GAUGES, MetricRegistry
from velib_exporter.monitoring.mapper import RideRecord


def _ride(start, distance=1000.0, speed=12.5, co2=42.0):
    return RideRecord(start_date=start, end_date=start + 600, distance=distance, average_speed=speed, saved_carbon_dioxide=co2)


def _samples(text: bytes) -> dict:
    """Converte a exposição em {linha_sem_valor: valor}."""
    out = {}
    for line in text.decode("utf-8").splitlines():
        if not line or line.startswith("#"):
            continue
        name, value = line.rsplit(" ", 1)
        out[name] = float(value)
    return out


def test_fresh_registry_exposes_zeroes():
    """Registo novo: todos os gauges e o contador a zero."""
    reg = MetricRegistry()
    samples = _samples(reg.render())
    assert samples["velib_distance_total"] == 0.0
    assert samples["velib_co2_total_saved"] == 0.0
    assert samples["velib_fetching_errors_total"] == 0.0
    assert not any(k.startswith("velib_trip{") for k in samples)


def test_registries_are_isolated():
    a = MetricRegistry()
    b = MetricRegistry()
    a.set_gauge("trip_number", 3)
    assert b.snapshot().gauges["trip_number"] == 0.0


def test_set_gauge_last_write_wins():
    reg = MetricRegistry()
    reg.set_gauge("distance_total", 10)
    reg.set_gauge("distance_total", 7)
    assert _samples(reg.render())["velib_distance_total"] == 7.0


def test_set_gauge_unknown_name():
    reg = MetricRegistry()
    with pytest.raises(KeyError):
        reg.set_gauge("nope", 1)
    with pytest.raises(KeyError):
        reg.set_gauges({"distance_total": 1, "nope": 2})
    # lote rejeitado não aplica nada
    assert reg.snapshot().gauges["distance_total"] == 0.0


def test_increment_counter():
    reg = MetricRegistry()
    reg.increment_counter()
    reg.increment_counter("fetching_errors")
    assert _samples(reg.render())["velib_fetching_errors_total"] == 2.0
    with pytest.raises(KeyError):
        reg.increment_counter("other")


def test_record_ride_labels_and_value():
    """Viagem publicada com labels start/end/speed/co2 e valor = distância."""
    reg = MetricRegistry()
    reg.record_ride(_ride(1700000000000, distance=2350.5))
    lines = [ln for ln in reg.render().decode("utf-8").splitlines() if ln.startswith("velib_trip{")]
    assert len(lines) == 1
    labels, value = lines[0].rsplit(" ", 1)
    assert float(value) == 2350.5
    for expected in (
        'start_date="1700000000000"',
        'end_date="1700000000600"',
        'average_speed="12.500000"',
        'co2_saved_total="42.000000"',
    ):
        assert expected in labels


def test_record_ride_same_key_overwrites():
    reg = MetricRegistry()
    reg.record_ride(_ride(100, distance=1.0))
    reg.record_ride(_ride(100, distance=2.0))
    snap = reg.snapshot()
    assert len(snap.rides) == 1
    assert list(snap.rides.values())[0][1] == 2.0


def test_ride_cap_evicts_oldest():
    """Acima de max_rides, descarta as viagens com start_date mais antigo."""
    reg = MetricRegistry(max_rides=3)
    reg.record_rides([_ride(s) for s in (50, 10, 40, 20, 30)])
    starts = sorted(k[0] for k in reg.snapshot().rides)
    assert starts == [30, 40, 50]

    reg.record_ride(_ride(5))
    assert sorted(k[0] for k in reg.snapshot().rides) == [30, 40, 50]

    reg.record_ride(_ride(60))
    assert sorted(k[0] for k in reg.snapshot().rides) == [40, 50, 60]


def test_invalid_max_rides():
    with pytest.raises(ValueError):
        MetricRegistry(max_rides=0)


def test_snapshot_is_a_copy():
    reg = MetricRegistry()
    snap = reg.snapshot()
    snap.gauges["distance_total"] = 99.0
    assert reg.snapshot().gauges["distance_total"] == 0.0


def test_mark_success(monkeypatch):
    monkeypatch.setattr(registry_mod.time, "time", lambda: 1234.0)
    reg = MetricRegistry()
    reg.mark_success("user_stats")
    assert reg.snapshot().last_success == {"user_stats": 1234.0}


def test_concurrent_scrapes_never_see_mixed_group():
    """Scrapes concorrentes com escritas em lote veem sempre um grupo coerente."""
    reg = MetricRegistry()
    names = list(GAUGES)
    prom_names = [f"velib_{GAUGES[n][0]}" for n in names]
    stop = threading.Event()
    errors = []

    def writer():
        i = 0
        while not stop.is_set():
            i += 1
            reg.set_gauges({n: i for n in names})

    def reader():
        for _ in range(300):
            samples = _samples(reg.render())
            values = {samples[p] for p in prom_names}
            if len(values) != 1:
                errors.append(values)

    w = threading.Thread(target=writer)
    readers = [threading.Thread(target=reader) for _ in range(3)]
    w.start()
    for r in readers:
        r.start()
    for r in readers:
        r.join()
    stop.set()
    w.join()

    assert errors == []
