"""Parser de argumentos da linha de comando.

Expõe as opções do exporter (token, bind do servidor, intervalos de coleta,
paginação, logging). Os padrões vêm de ``config.settings.load_settings``,
pelo que a prioridade final é: CLI > ambiente > ``.env`` > padrão.
"""

import argparse
from typing import Sequence

from ..config.settings import DEFAULT_SETTINGS, load_settings, validate_settings

# ========================
# 0. Configuração do parser
# ========================


# Função principal do módulo; cria e retorna o ArgumentParser configurado
def configure_argparser(defaults: dict | None = None) -> argparse.ArgumentParser:
    """Cria e retorna ArgumentParser configurado para o exporter."""
    d = defaults if defaults is not None else load_settings()
    parser = argparse.ArgumentParser(
        prog="velib-exporter",
        description="Exporter Prometheus das estatísticas de uma conta Vélib' Métropole",
    )
    parser.add_argument("--token", default=d["token"], help="Token da API Vélib' (cookie BEARER)")
    parser.add_argument("--address", default=d["address"], help="Endereço de escuta do exporter")
    parser.add_argument("--port", type=int, default=d["port"], help="Porta de escuta do exporter")
    parser.add_argument(
        "--debug", action=argparse.BooleanOptionalAction, default=d["debug"], help="Modo debug (--no-debug desativa)"
    )
    parser.add_argument(
        "--stats-interval",
        dest="stats_interval_min",
        type=float,
        default=d["stats_interval_min"],
        help="Intervalo em minutos entre coletas das estatísticas do utilizador",
    )
    parser.add_argument(
        "--rides-interval",
        dest="rides_interval_min",
        type=float,
        default=d["rides_interval_min"],
        help="Intervalo em minutos entre coletas do histórico de viagens",
    )
    parser.add_argument(
        "--page-size", dest="page_size", type=int, default=d["page_size"], help="Viagens pedidas por página"
    )
    parser.add_argument(
        "--max-rides",
        dest="max_rides",
        type=int,
        default=d["max_rides"],
        help="Número máximo de viagens expostas como séries",
    )
    parser.add_argument("--timeout", type=float, default=d["timeout"], help="Timeout HTTP em segundos")
    parser.add_argument("--endpoint", default=d["endpoint"], help="URL base da API privada Vélib'")
    parser.add_argument("--log-root", dest="log_root", default=d["log_root"], help="Caminho raiz para os logs")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        type=str,
        default=None,
        help="Nível de logging (DEBUG/INFO/WARNING/ERROR). Se ausente, definido por --debug",
    )
    parser.add_argument("--once", action="store_true", help="Executa cada coleta uma vez e termina")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Aumenta a verbosidade (-v)")
    return parser


# ========================
# 1. Análise e validação
# ========================


# Auxilia velib_exporter.main; analisa argv e valida argumentos
def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Analisa argv e retorna Namespace validado.

    Levanta ``ConfigError`` quando o token falta ou um valor é inválido.
    """
    parser = configure_argparser()
    ns = parser.parse_args(argv)
    validate_args(ns)
    return ns


# Auxilia parse_args; reaproveita a validação das settings
def validate_args(args: argparse.Namespace) -> None:
    """Valida e normaliza argumentos no próprio Namespace."""
    validated = validate_settings(settings_from_args(args))
    for key, value in validated.items():
        setattr(args, key, value)


def settings_from_args(args: argparse.Namespace) -> dict:
    """Converte o Namespace no dicionário de settings usado pelo core."""
    return {key: getattr(args, key, default) for key, default in DEFAULT_SETTINGS.items()}


# ========================
# 2. Configuração de logging
# ========================


# Auxilia velib_exporter.main; extrai configuração de logging dos argumentos
def get_log_config(args: argparse.Namespace) -> dict:
    """Retorna dict com configuração de logging ('level' e 'root')."""
    if getattr(args, "log_level", None):
        level = str(args.log_level).upper()
    elif getattr(args, "debug", False) or (getattr(args, "verbose", 0) or 0) >= 1:
        level = "DEBUG"
    else:
        level = "INFO"
    return {"level": level, "root": getattr(args, "log_root", None)}
