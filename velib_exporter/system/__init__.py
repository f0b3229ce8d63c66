"""Pacote system: funções de suporte (logging, diretórios, redação do token)."""

from .logs import TokenRedactionFilter, configure_logging, setup_debug_file_handler

__all__ = ["TokenRedactionFilter", "configure_logging", "setup_debug_file_handler"]
