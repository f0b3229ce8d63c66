"""Conversão das respostas JSON da API Vélib' em registos normalizados.

Funções puras, sem I/O: recebem o payload já decodificado (``dict``) e
devolvem dataclasses imutáveis. Erros de formato são reportados como
``DecodeError``; um campo isolado inválido como ``FieldParseError``.
"""

import math
from dataclasses import asdict, dataclass
from typing import Any

from ..core.errors import DecodeError, FieldParseError


# ========================
# 0. Tipos
# ========================


@dataclass(frozen=True)
class RawUserStats:
    """Espelho de ``generalDetails.customerIndicators`` de ``getAllInfosUser``."""

    distance_global_counter: int
    distance_electrical_counter: int
    trip_counter: int
    trip_average_duration: int
    trip_highest_distance: int
    global_saved_carbon_dioxide: float


@dataclass(frozen=True)
class NormalizedStats:
    """Registo plano publicado como gauges."""

    distance_total: int
    distance_electrical: int
    distance_mechanical: int
    trip_number: int
    trip_average_duration: int
    trip_average_distance: float
    trip_highest_distance: int
    total_saved_carbon_dioxide: float


@dataclass(frozen=True)
class RideRecord:
    """Uma viagem do histórico; identificada por (start_date, end_date)."""

    start_date: int
    end_date: int
    distance: float
    average_speed: float
    saved_carbon_dioxide: float

    @property
    def key(self) -> tuple[int, int]:
        return (self.start_date, self.end_date)


# Nome do campo JSON -> atributo de RawUserStats
_INDICATOR_FIELDS = {
    "distanceGlobalCounter": "distance_global_counter",
    "distanceElectricalCounter": "distance_electrical_counter",
    "tripCounter": "trip_counter",
    "tripAverageDuration": "trip_average_duration",
    "tripHighestDistance": "trip_highest_distance",
    "globalSavedCarbonDioxide": "global_saved_carbon_dioxide",
}

_FLOAT_INDICATORS = {"globalSavedCarbonDioxide"}


# ========================
# 1. Helpers de validação
# ========================


def _require_mapping(obj: Any, path: str) -> dict:
    if not isinstance(obj, dict):
        raise DecodeError(f"esperado objeto JSON em {path}, obtido {type(obj).__name__}")
    return obj


def _require_number(container: dict, key: str, path: str) -> int | float:
    """Devolve ``container[key]`` se for numérico e finito (bool não conta)."""
    if key not in container:
        raise DecodeError(f"campo ausente: {path}.{key}")
    value = container[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"campo não numérico: {path}.{key}={value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise DecodeError(f"campo não finito: {path}.{key}={value!r}")
    return value


def _parse_distance(raw: Any) -> float:
    """Converte a distância (string numérica) de uma viagem."""
    if isinstance(raw, bool):
        raise FieldParseError("parameter3.DISTANCE", raw)
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise FieldParseError("parameter3.DISTANCE", raw) from exc
    if not math.isfinite(value):
        raise FieldParseError("parameter3.DISTANCE", raw)
    return value


# ========================
# 2. Estatísticas do utilizador
# ========================


def parse_user_stats(payload: Any) -> RawUserStats:
    """Valida o payload de ``getAllInfosUser`` e extrai os indicadores."""
    root = _require_mapping(payload, "$")
    details = _require_mapping(root.get("generalDetails"), "generalDetails")
    indicators = _require_mapping(details.get("customerIndicators"), "generalDetails.customerIndicators")

    values: dict[str, int | float] = {}
    for json_key, attr in _INDICATOR_FIELDS.items():
        value = _require_number(indicators, json_key, "customerIndicators")
        if json_key in _FLOAT_INDICATORS:
            values[attr] = float(value)
        else:
            values[attr] = int(value)
    return RawUserStats(**values)  # type: ignore[arg-type]


def normalize_user_stats(raw: RawUserStats) -> NormalizedStats:
    """Mapeia RawUserStats para NormalizedStats, calculando os derivados.

    - distance_mechanical = global - elétrica
    - trip_average_distance = global / número de viagens, ou 0.0 sem viagens
    """
    if raw.trip_counter > 0:
        average_distance = raw.distance_global_counter / raw.trip_counter
    else:
        average_distance = 0.0
    return NormalizedStats(
        distance_total=raw.distance_global_counter,
        distance_electrical=raw.distance_electrical_counter,
        distance_mechanical=raw.distance_global_counter - raw.distance_electrical_counter,
        trip_number=raw.trip_counter,
        trip_average_duration=raw.trip_average_duration,
        trip_average_distance=float(average_distance),
        trip_highest_distance=raw.trip_highest_distance,
        total_saved_carbon_dioxide=raw.global_saved_carbon_dioxide,
    )


def stats_as_dict(stats: NormalizedStats) -> dict[str, float]:
    """Achata NormalizedStats em ``{nome_do_gauge: valor}``."""
    return {k: float(v) for k, v in asdict(stats).items()}


# ========================
# 3. Histórico de viagens
# ========================


def parse_rides_page(payload: Any) -> tuple[int, list]:
    """Extrai ``(totalNumberOfRecords, walletOperations)`` de uma página."""
    root = _require_mapping(payload, "$")
    paging = _require_mapping(root.get("paging"), "paging")
    total = _require_number(paging, "totalNumberOfRecords", "paging")
    items = root.get("walletOperations")
    if items is None:
        items = []
    if not isinstance(items, list):
        raise DecodeError(f"walletOperations deve ser lista, obtido {type(items).__name__}")
    return int(total), items


def parse_ride(item: Any) -> RideRecord:
    """Converte um elemento de ``walletOperations`` em RideRecord."""
    op = _require_mapping(item, "walletOperations[]")
    params = _require_mapping(op.get("parameter3"), "walletOperations[].parameter3")
    return RideRecord(
        start_date=int(_require_number(op, "startDate", "walletOperations[]")),
        end_date=int(_require_number(op, "endDate", "walletOperations[]")),
        distance=_parse_distance(params.get("DISTANCE")),
        average_speed=float(_require_number(params, "AVERAGE_SPEED", "parameter3")),
        saved_carbon_dioxide=float(_require_number(params, "SAVED_CARBON_DIOXIDE", "parameter3")),
    )
