"""Pacote exporter: registo de métricas e servidor HTTP de scraping.

Oferece re-exports para ``from velib_exporter.exporter import MetricRegistry``.
"""

from .registry import MetricRegistry
from .main_http import create_server, start_http_server_thread

__all__ = ["MetricRegistry", "create_server", "start_http_server_thread"]
