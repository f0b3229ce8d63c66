"""Subsistema de logs do exporter.

Resolve os diretórios de log, instala os handlers de ficheiro de debug
(texto legível + JSONL) e o filtro que mascara o token Vélib' em qualquer
registo. Todas as rotinas aqui são best-effort: uma falha de logging nunca
deve derrubar o exporter.
"""

import json as _json
import logging
import os
import sys
import traceback
import types
from dataclasses import dataclass
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LOG_ROOT = "logs"
DEBUG_LOG_FILENAME = "debug_log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
REDACTED = "***"


# ========================
# 1. Diretórios e Paths
# ========================


@dataclass(frozen=True)
class LogPaths:
    """Agrupa os caminhos usados pelo subsistema de logging."""

    root: Path
    debug_dir: Path


def ensure_dir_writable(p: Path) -> bool:
    """Garante, em melhor esforço, que `p` existe e é gravável."""
    try:
        p.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("ensure_dir_writable: failed for %s: %s", p, exc, exc_info=True)
        return False
    if not os.access(p, os.W_OK):
        logger.error("ensure_dir_writable: permission denied writing to %s", p)
        return False
    return True


def get_log_paths(root: str | Path | None = None) -> LogPaths:
    """Resolve raiz de logs e garante os diretórios criados.

    Prioridade: argumento ``root``, depois ``VELIB_LOG_ROOT``, depois ``logs``.
    """
    candidate = root or os.getenv("VELIB_LOG_ROOT") or DEFAULT_LOG_ROOT
    log_root = Path(candidate)
    debug_dir = log_root / "debug"
    ensure_dir_writable(debug_dir)
    return LogPaths(log_root, debug_dir)


# Retorna o caminho do arquivo de debug do dia
def get_debug_file_path(root: str | Path | None = None) -> Path:
    """Retorna caminho do arquivo de debug diário (``debug_log-YYYY-MM-DD.txt``)."""
    return get_log_paths(root).debug_dir / f"{DEBUG_LOG_FILENAME}-{date.today().isoformat()}.txt"


# ========================
# 2. Filtro e formatadores
# ========================


class TokenRedactionFilter(logging.Filter):
    """Substitui o token por ``***`` na mensagem final de cada registo."""

    def __init__(self, token: str):
        super().__init__()
        self._token = token

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._token:
            return True
        msg = record.getMessage()
        if self._token in msg:
            record.msg = msg.replace(self._token, REDACTED)
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """Uma linha JSON por evento, para ingestão."""

    def format(self, record):
        obj = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            obj["exc"] = "".join(traceback.format_exception(*record.exc_info))
        return _json.dumps(obj, ensure_ascii=False)


# ========================
# 3. Instalação dos handlers
# ========================


def configure_logging(level: str = "INFO", token: str | None = None) -> None:
    """Configura o logger root (stderr) e o filtro de redação do token."""
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    if token:
        redact = TokenRedactionFilter(token)
        for h in root.handlers:
            h.addFilter(redact)


def _has_existing_file_handler(root: logging.Logger, paths: tuple) -> bool:
    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) in paths:
            return True
    return False


def _wrap_emit_safe(handler: logging.Handler) -> None:
    """Substitui ``emit`` por uma versão que suprime falhas do próprio handler."""
    orig = handler.emit

    def _emit_safe(self, record):
        try:
            return orig(record)
        except Exception:
            sys.stderr.write("velib-exporter: debug handler emit failed\n")

    handler.emit = types.MethodType(_emit_safe, handler)  # type: ignore[assignment]


def setup_debug_file_handler(root_dir: str | Path | None = None, token: str | None = None) -> None:
    """Instala handlers de ficheiro para debug e hook global de exceções.

    Adiciona ao logger root um handler texto e um JSONL no diretório de debug.
    Evita duplicar handlers já presentes para os mesmos caminhos e instala um
    ``sys.excepthook`` que envia exceções não tratadas para o logger root.
    """
    debug_path = get_debug_file_path(root_dir)

    fh = logging.FileHandler(str(debug_path), encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))

    jfh = logging.FileHandler(str(debug_path.with_suffix(".jsonl")), encoding="utf-8")
    jfh.setLevel(logging.INFO)
    jfh.setFormatter(JSONFormatter())

    root = logging.getLogger()
    if _has_existing_file_handler(root, (fh.baseFilename, jfh.baseFilename)):
        fh.close()
        jfh.close()
    else:
        for h in (fh, jfh):
            if token:
                h.addFilter(TokenRedactionFilter(token))
            _wrap_emit_safe(h)
            root.addHandler(h)

    def _exc_hook(exc_type, exc_value, exc_tb):
        root.error("Unhandled exception", exc_info=(exc_type, exc_value, exc_tb))
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _exc_hook
