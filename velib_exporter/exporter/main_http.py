"""Servidor HTTP: expõe /metrics (Prometheus) e /health (JSON).

O handler só lê o ``MetricRegistry`` associado ao servidor; nunca dispara
uma coleta. O endereço padrão é loopback: exponha externamente apenas atrás
de firewall ou rede privada.
"""

import json
import logging
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import psutil
from prometheus_client import CONTENT_TYPE_LATEST

from .registry import MetricRegistry

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"
HEALTH_PATH = "/health"


class MetricsHTTPServer(ThreadingHTTPServer):
    """ThreadingHTTPServer que transporta o registo a servir."""

    daemon_threads = True

    def __init__(self, server_address, registry: MetricRegistry):
        self.registry = registry
        super().__init__(server_address, MetricsHandler)


class MetricsHandler(BaseHTTPRequestHandler):
    """Handler HTTP para /metrics e /health."""

    server: MetricsHTTPServer

    def do_GET(self):
        """Trata requisições GET.

        Endpoints suportados:
        - /metrics: snapshot atual do registo em formato de exposição Prometheus.
        - /health: JSON com estado, últimas coletas bem-sucedidas e métricas do processo.
        """
        path = self.path.split("?", 1)[0]
        if path == METRICS_PATH:
            output = self.server.registry.render()
            self.send_response(200)
            self.send_header("Content-type", CONTENT_TYPE_LATEST)
            self.send_header("Content-Length", str(len(output)))
            self.end_headers()
            self.wfile.write(output)
        elif path == HEALTH_PATH:
            snap = self.server.registry.snapshot()
            status = {
                "status": "ok",
                "last_success": snap.last_success,
                "fetching_errors": snap.counters.get("fetching_errors", 0.0),
                "process": _get_process_metrics(),
            }
            body = json.dumps(status).encode("utf-8")
            self.send_response(200)
            self.send_header("Content-type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        else:
            self.send_response(404)
            self.end_headers()

    def log_message(self, format, *args):
        """Envia o log de acesso para o logger do módulo em DEBUG."""
        logger.debug("%s - %s", self.address_string(), format % args)


def _get_process_metrics() -> dict:
    """Coleta métricas do processo em tempo real."""
    proc = psutil.Process()
    metrics = {
        "cpu_percent": proc.cpu_percent(interval=0.0),
        "memory_rss_bytes": getattr(proc.memory_info(), "rss", 0),
        "uptime_seconds": float(max(0, (time.time() - proc.create_time()))),
        "num_threads": proc.num_threads(),
    }
    # num_fds não existe em todas as plataformas
    num_fds_fn = getattr(proc, "num_fds", None)
    if callable(num_fds_fn):
        try:
            metrics["num_fds"] = num_fds_fn()
        except psutil.Error as exc:
            logger.debug("Falha ao obter número de descritores de arquivos: %s", exc, exc_info=True)
    return metrics


def create_server(registry: MetricRegistry, addr: str = "127.0.0.1", port: int = 5050) -> MetricsHTTPServer:
    """Cria (e faz bind) do servidor de métricas sem o iniciar."""
    return MetricsHTTPServer((addr, port), registry)


def start_http_server_thread(server: MetricsHTTPServer) -> threading.Thread:
    """Serve ``server`` numa thread daemon e devolve a thread."""
    thread = threading.Thread(target=server.serve_forever, name="metrics-http", daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    logger.info("Beginning to serve metrics on %s:%s", host, port)
    return thread
