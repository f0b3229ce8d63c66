"""Core do exporter: ciclos de coleta e loop principal.

Cada ciclo faz fetch -> normalização -> atualização do registo. Qualquer
``VelibError`` vindo do cliente é tratado aqui: incrementa o contador de
erros, é registado em log e o ciclo termina cedo, deixando no registo os
últimos valores bons.
"""

import logging

from .errors import VelibError
from .scheduler import PollScheduler
from ..exporter.registry import FETCH_ERRORS, MetricRegistry
from ..monitoring.client import VelibClient
from ..monitoring.mapper import stats_as_dict

logger = logging.getLogger(__name__)

USER_STATS_JOB = "user_stats"
USER_RIDES_JOB = "user_rides"


# ========================
# 1. Ciclos de coleta
# ========================


def update_user_stats(client: VelibClient, registry: MetricRegistry) -> bool:
    """Atualiza os gauges agregados do utilizador.

    Retorna True em sucesso e False quando o ciclo falhou.
    """
    try:
        stats = client.fetch_user_stats()
    except VelibError as exc:
        registry.increment_counter(FETCH_ERRORS)
        logger.error("Erro ao coletar estatísticas Vélib' do utilizador: %s", exc)
        return False

    values = stats_as_dict(stats)
    logger.info("Updating velib-exporter user gauge: %s", values)
    registry.set_gauges(values)
    registry.mark_success(USER_STATS_JOB)
    return True


def update_user_rides(client: VelibClient, registry: MetricRegistry, page_size: int) -> bool:
    """Publica o histórico de viagens; viagens malformadas contam como erro."""

    def _on_invalid(exc: VelibError) -> None:
        registry.increment_counter(FETCH_ERRORS)

    try:
        rides = client.fetch_rides(page_size, on_invalid=_on_invalid)
    except VelibError as exc:
        registry.increment_counter(FETCH_ERRORS)
        logger.error("Erro ao coletar histórico de viagens Vélib': %s", exc)
        return False

    for ride in rides:
        logger.debug(
            "Updating velib-exporter ride gauge: start_date=%s end_date=%s distance=%s",
            ride.start_date,
            ride.end_date,
            ride.distance,
        )
    registry.record_rides(rides)
    registry.mark_success(USER_RIDES_JOB)
    logger.info("Histórico de viagens atualizado: %d viagens", len(rides))
    return True


# ========================
# 2. Loop principal
# ========================


def build_scheduler(client: VelibClient, registry: MetricRegistry, settings: dict) -> PollScheduler:
    """Cria o agendador com um job por grupo de métricas."""
    scheduler = PollScheduler()
    scheduler.add_job(
        USER_STATS_JOB,
        float(settings["stats_interval_min"]) * 60.0,
        lambda: update_user_stats(client, registry),
    )
    scheduler.add_job(
        USER_RIDES_JOB,
        float(settings["rides_interval_min"]) * 60.0,
        lambda: update_user_rides(client, registry, int(settings["page_size"])),
    )
    return scheduler


def run_loop(client: VelibClient, registry: MetricRegistry, settings: dict, once: bool = False) -> None:
    """Arranca o agendador e bloqueia até KeyboardInterrupt.

    Com ``once=True`` executa cada grupo uma única vez, em sequência, e retorna.
    """
    scheduler = build_scheduler(client, registry, settings)
    if once:
        for name in scheduler.jobs:
            scheduler.run_job(name)
        return

    scheduler.start()
    try:
        scheduler.wait()
    except KeyboardInterrupt:
        logging.info("Recebido KeyboardInterrupt, saindo...")
    finally:
        scheduler.stop()
