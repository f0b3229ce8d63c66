"""Ponto de entrada do exporter Vélib'.

Faz o parsing de argumentos, configura o logging, cria o registo de
métricas, o cliente da API e o servidor HTTP, e entrega o controlo ao loop
de coleta em ``core``. Um token ausente termina o processo (código 2) antes
de qualquer bind ou agendamento.
"""

import logging as _logging
import sys

from .core.args import get_log_config, parse_args, settings_from_args
from .core.core import run_loop
from .core.errors import ConfigError
from .exporter.main_http import create_server, start_http_server_thread
from .exporter.registry import MetricRegistry
from .monitoring.client import VelibClient
from .system.logs import LOG_FORMAT, configure_logging, setup_debug_file_handler

EXIT_CONFIG_ERROR = 2
EXIT_BIND_ERROR = 1

logger = _logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Inicializa a aplicação e inicia o loop principal.

    Args:
        argv: Lista de argumentos (usada em testes). Quando ``None`` usa os
            argumentos de linha de comando do processo.
    """
    try:
        args = parse_args(argv)
    except ConfigError as exc:
        _logging.basicConfig(format=LOG_FORMAT)
        logger.critical("Configuração inválida: %s", exc)
        raise SystemExit(EXIT_CONFIG_ERROR) from exc

    log_conf = get_log_config(args)
    configure_logging(log_conf["level"], token=args.token)
    try:
        setup_debug_file_handler(log_conf["root"], token=args.token)
    except OSError as exc:
        logger.debug("falha ao configurar debug file handler: %s", exc, exc_info=True)

    settings = settings_from_args(args)
    registry = MetricRegistry(max_rides=settings["max_rides"])
    client = VelibClient(settings["token"], endpoint=settings["endpoint"], timeout=settings["timeout"])

    if args.once:
        try:
            run_loop(client, registry, settings, once=True)
        finally:
            client.close()
        sys.stdout.write(registry.render().decode("utf-8"))
        return

    try:
        server = create_server(registry, settings["address"], settings["port"])
    except OSError as exc:
        client.close()
        logger.critical("Falha ao iniciar servidor em %s:%s: %s", settings["address"], settings["port"], exc)
        raise SystemExit(EXIT_BIND_ERROR) from exc

    start_http_server_thread(server)
    try:
        run_loop(client, registry, settings)
    finally:
        server.shutdown()
        server.server_close()
        client.close()


if __name__ == "__main__":
    main()
