"""Agendador de ciclos de coleta.

Cada grupo de métricas corre na sua própria thread daemon, em ticks de
relógio fixos (``início + k * intervalo``). Ticks perdidos durante uma
execução longa são saltados, nunca recuperados. Um lock não-bloqueante por
job garante no máximo uma execução em curso por grupo: se o lock estiver
ocupado, o tick é ignorado e usamos o valor já publicado.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class PollJob:
    """Um ciclo periódico: nome, intervalo em segundos e função a chamar."""

    name: str
    interval: float
    func: Callable[[], object]
    lock: threading.Lock = field(default_factory=threading.Lock)
    runs: int = 0
    skipped: int = 0


class PollScheduler:
    """Agendador leve baseado em threads e ``threading.Event``."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._jobs: dict[str, PollJob] = {}
        self._threads: list[threading.Thread] = []
        self._stop = threading.Event()
        self._clock = clock

    @property
    def jobs(self) -> dict[str, PollJob]:
        return dict(self._jobs)

    def add_job(self, name: str, interval: float, func: Callable[[], object]) -> PollJob:
        """Regista um job; ``interval`` em segundos, > 0."""
        if interval <= 0:
            raise ValueError(f"intervalo do job {name} deve ser > 0")
        if name in self._jobs:
            raise ValueError(f"job duplicado: {name}")
        job = PollJob(name=name, interval=float(interval), func=func)
        self._jobs[name] = job
        return job

    # ========================
    # 1. Execução de um tick
    # ========================

    def run_job(self, name: str) -> bool:
        """Executa o job uma vez, se não houver outra execução em curso.

        Retorna True se correu, False se o tick foi ignorado. Exceções da
        função são registadas e não se propagam.
        """
        job = self._jobs[name]
        if not job.lock.acquire(blocking=False):
            job.skipped += 1
            logger.warning("Job %s ainda em execução; tick ignorado", name)
            return False
        try:
            job.runs += 1
            job.func()
        except Exception:
            logger.exception("Erro inesperado no job %s", name)
        finally:
            job.lock.release()
        return True

    def _worker(self, job: PollJob) -> None:
        start = self._clock()
        next_run = start
        while not self._stop.is_set():
            self.run_job(job.name)
            now = self._clock()
            # salta ticks já ultrapassados
            missed = max(1, int((now - next_run) // job.interval) + 1)
            if missed > 1:
                logger.info("Job %s: %d tick(s) saltado(s)", job.name, missed - 1)
            next_run += missed * job.interval
            if self._stop.wait(max(0.0, next_run - now)):
                break

    # ========================
    # 2. Ciclo de vida
    # ========================

    def start(self) -> None:
        """Inicia uma thread daemon por job; a primeira execução é imediata."""
        if self._threads:
            logger.debug("scheduler já iniciado")
            return
        self._stop.clear()
        for job in self._jobs.values():
            t = threading.Thread(target=self._worker, args=(job,), name=f"poll-{job.name}", daemon=True)
            t.start()
            self._threads.append(t)
            logger.info("Job %s agendado a cada %.0fs", job.name, job.interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Sinaliza as threads para terminar e aguarda por elas."""
        self._stop.set()
        for t in self._threads:
            t.join(timeout)
        self._threads = []

    def wait(self, timeout: float | None = None) -> bool:
        """Bloqueia até ``stop()`` ser chamado (ou ``timeout``)."""
        return self._stop.wait(timeout)
