"""Configurações do exporter Vélib'.

Carrega valores a partir de ``DEFAULT_SETTINGS`` e permite overrides via
arquivo ``.env`` ou variáveis de ambiente (prefixo ``VELIB_*``). As variáveis
do processo sobrescrevem o ``.env``; a linha de comando (``core.args``)
sobrescreve ambos.

Funções públicas principais:

- ``load_settings()`` -> dicionário com as chaves de ``DEFAULT_SETTINGS``.
- ``validate_settings()`` -> normaliza tipos e levanta ``ConfigError``.
"""

import logging
import os
from pathlib import Path

from ..core.errors import ConfigError
from ..monitoring.client import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

# ========================
# Constantes e padrões globais
# ========================

DEFAULT_SETTINGS = {
    "token": None,
    "address": "127.0.0.1",
    "port": 5050,
    "debug": False,
    "stats_interval_min": 30.0,
    "rides_interval_min": 60.0,
    "page_size": 20,
    "max_rides": 50,
    "timeout": DEFAULT_TIMEOUT,
    "endpoint": DEFAULT_ENDPOINT,
    "log_root": "logs",
}

# chave de configuração -> variável de ambiente
ENV_MAP = {
    "token": "VELIB_TOKEN",
    "address": "VELIB_EXPORTER_ADDR",
    "port": "VELIB_EXPORTER_PORT",
    "debug": "VELIB_DEBUG",
    "stats_interval_min": "VELIB_STATS_INTERVAL_MIN",
    "rides_interval_min": "VELIB_RIDES_INTERVAL_MIN",
    "page_size": "VELIB_RIDES_PAGE_SIZE",
    "max_rides": "VELIB_MAX_RIDES",
    "timeout": "VELIB_HTTP_TIMEOUT",
    "endpoint": "VELIB_API_ENDPOINT",
    "log_root": "VELIB_LOG_ROOT",
}

_INT_KEYS = ("port", "page_size", "max_rides")
_FLOAT_KEYS = ("stats_interval_min", "rides_interval_min", "timeout")
_TRUE_VALUES = ("1", "true", "yes", "on")


# ========================
# 1. Leitura de .env e ambiente
# ========================


# Auxilia load_settings; centraliza leitura do .env
def _read_env_file(path: Path | str) -> dict:
    """Lê um arquivo `.env` e devolve um dicionário chave->valor.

    Linhas vazias e comentários (começando com '#') são ignorados.
    """
    result: dict[str, str] = {}
    p = Path(path)
    if not p.exists():
        return result
    try:
        with p.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                if key.startswith("export "):
                    key = key[len("export ") :].strip()
                val = val.strip().strip('"').strip("'")
                result[key] = val
    except OSError as exc:
        logger.debug("Falha ao ler .env em %s: %s", p, exc)
        return {}
    return result


# Auxilia load_settings; une variáveis do ambiente e .env
def _merge_env_items(env_path: Path) -> dict:
    """Retorna um mapeamento combinado de `.env` e env vars do processo.

    As variáveis do processo sobrescrevem o arquivo `.env`.
    """
    env_items = _read_env_file(env_path)
    if env_items == {} and env_path.exists():
        logger.warning("Erro ou ficheiro .env vazio em %s", env_path)
    env_items.update(os.environ)
    return env_items


# Auxilia load_settings; converte um valor textual para o tipo da chave
def _coerce(key: str, raw):
    if key in _INT_KEYS:
        return int(raw)
    if key in _FLOAT_KEYS:
        return float(raw)
    if key == "debug":
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in _TRUE_VALUES
    if raw is None:
        return None
    return str(raw)


# Função principal do módulo; carrega as configurações do ambiente
def load_settings(env_file: str | Path | None = None) -> dict:
    """Carrega configurações combinando DEFAULTS + .env + ambiente.

    Valores com tipo inválido são ignorados (com warning) e mantêm o padrão.
    """
    settings = dict(DEFAULT_SETTINGS)
    if env_file is None:
        env_file = os.getenv("VELIB_ENV_FILE", Path.cwd() / ".env")
    env_items = _merge_env_items(Path(env_file))

    for key, env_var in ENV_MAP.items():
        raw = env_items.get(env_var)
        if raw is None or raw == "":
            continue
        try:
            settings[key] = _coerce(key, raw)
        except (TypeError, ValueError):
            logger.warning("%s inválido ('%s'); usando valor padrão %r", env_var, raw, settings[key])
    return settings


# ========================
# 2. Validação
# ========================


def validate_settings(settings: dict) -> dict:
    """Normaliza tipos e valida limites; levanta ``ConfigError`` se inválido."""
    if not isinstance(settings, dict):
        raise TypeError("settings deve ser um dict")

    token = settings.get("token")
    if not token or not str(token).strip():
        raise ConfigError("token Vélib' ausente (use --token ou VELIB_TOKEN)")
    settings["token"] = str(token).strip()

    for key in _INT_KEYS + _FLOAT_KEYS:
        try:
            settings[key] = _coerce(key, settings.get(key, DEFAULT_SETTINGS[key]))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{key} deve ser numérico: {settings.get(key)!r}") from exc
        if settings[key] <= 0:
            raise ConfigError(f"{key} deve ser > 0: {settings[key]!r}")

    if not (1 <= settings["port"] <= 65535):
        raise ConfigError(f"porta deve estar entre 1 e 65535: {settings['port']}")

    settings["debug"] = bool(settings.get("debug", False))
    logger.debug("Configurações validadas e normalizadas")
    return settings
