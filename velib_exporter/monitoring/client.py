"""Cliente HTTP da API privada Vélib' Métropole.

Duas leituras autenticadas: estatísticas agregadas do utilizador e o
histórico paginado de viagens. O token segue no cookie ``BEARER`` e nunca é
registado em log.

Erros de transporte viram ``NetworkError``, status não-2xx ``UpstreamError``
e corpo inválido ``DecodeError``. Não há retry aqui: um ciclo falhado é
simplesmente repetido no próximo tick do agendador.
"""

import logging
from typing import Callable

import requests  # type: ignore[import-untyped]

from ..core.errors import DecodeError, NetworkError, UpstreamError
from .mapper import (
    NormalizedStats,
    RideRecord,
    normalize_user_stats,
    parse_ride,
    parse_rides_page,
    parse_user_stats,
)

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://www.velib-metropole.fr/webapi/private"
DEFAULT_TIMEOUT = 30.0
USER_STATS_PATH = "/getAllInfosUser"
RIDES_LIST_PATH = "/getCourseList"
BEARER_COOKIE = "BEARER"
USER_AGENT = "velib-exporter/0.1"


class VelibClient:
    """Cliente síncrono baseado em ``requests.Session``.

    Parâmetros:
        token: credencial bearer (obrigatória, imutável).
        endpoint: URL base da API privada.
        timeout: limite em segundos aplicado a todos os pedidos.
        session: sessão injetável (usada nos testes).
    """

    def __init__(
        self,
        token: str,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        if not token:
            raise ValueError("token vazio")
        self._token = token
        self.endpoint = endpoint.rstrip("/")
        self.timeout = float(timeout)
        self._session = session if session is not None else requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

    def __repr__(self) -> str:
        return f"VelibClient(endpoint={self.endpoint!r}, timeout={self.timeout}, token=***)"

    def __enter__(self) -> "VelibClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    # ========================
    # 1. Pedido base
    # ========================

    def _get_json(self, path: str, params: dict | None = None):
        """Executa um GET autenticado e devolve o corpo JSON decodificado."""
        url = f"{self.endpoint}{path}"
        logger.debug("Requesting GET %s params=%s", url, params)
        try:
            resp = self._session.get(
                url,
                params=params,
                cookies={BEARER_COOKIE: self._token},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise NetworkError(f"falha ao contactar {url}: {exc.__class__.__name__}") from exc

        logger.debug("Response status code %s for %s", resp.status_code, url)
        try:
            resp.raise_for_status()
        except requests.HTTPError as exc:
            raise UpstreamError(resp.status_code, url) from exc

        try:
            return resp.json()
        except ValueError as exc:
            raise DecodeError(f"resposta não é JSON válido em {url}") from exc

    # ========================
    # 2. Operações públicas
    # ========================

    def fetch_user_stats(self) -> NormalizedStats:
        """Lê ``getAllInfosUser`` e devolve as estatísticas normalizadas."""
        payload = self._get_json(USER_STATS_PATH)
        return normalize_user_stats(parse_user_stats(payload))

    def fetch_rides(
        self,
        page_size: int,
        on_invalid: Callable[[DecodeError], None] | None = None,
    ) -> list[RideRecord]:
        """Percorre o histórico de viagens página a página.

        Começa no offset 0 e pára quando ``offset + page_size`` atinge o total
        anunciado na primeira página, ou antes, numa página vazia. Uma viagem
        malformada é registada, reportada a ``on_invalid`` e ignorada; as
        restantes seguem intactas.
        """
        if page_size <= 0:
            raise ValueError("page_size deve ser > 0")

        rides: list[RideRecord] = []
        offset = 0
        total: int | None = None
        while True:
            payload = self._get_json(RIDES_LIST_PATH, params={"limit": page_size, "offset": offset})
            page_total, items = parse_rides_page(payload)
            if total is None:
                total = page_total
                logger.debug("Histórico de viagens: %d registos anunciados", total)

            for item in items:
                try:
                    rides.append(parse_ride(item))
                except DecodeError as exc:
                    logger.error("Viagem inválida no offset %d, ignorada: %s", offset, exc)
                    if on_invalid is not None:
                        on_invalid(exc)

            # página vazia: o total anunciado não é de confiança
            if not items:
                break
            if offset + page_size >= total:
                break
            offset += page_size
        return rides
