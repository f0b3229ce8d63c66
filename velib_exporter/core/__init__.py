"""Pacote core: orquestração do exporter.

Contém a hierarquia de erros, o agendador de coletas, os ciclos de coleta
e o parsing de argumentos.

Re-exports dos tipos usados pelos outros subpacotes.
"""

from .errors import ConfigError, DecodeError, FieldParseError, NetworkError, UpstreamError, VelibError
from .scheduler import PollScheduler

__all__ = [
    "ConfigError",
    "DecodeError",
    "FieldParseError",
    "NetworkError",
    "UpstreamError",
    "VelibError",
    "PollScheduler",
]
