"""
Coda operazioni con un solo worker: un'operazione alla volta, in ordine
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class TaskResult:
    name: str
    ok: bool
    value: Any = None
    error: Optional[BaseException] = None


class TaskQueue:
    """Esegue le operazioni privilegiate fuori dal chiamante, una per volta"""

    def __init__(self):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="coresettings")

    def submit(self, name: str, fn: Callable, *args,
               on_done: Optional[Callable[[TaskResult], None]] = None, **kwargs) -> Future:
        """
        Accoda un'operazione.

        Una volta avviata l'operazione arriva fino in fondo; on_done riceve
        un TaskResult sia in caso di successo che di errore.
        """
        logger.debug("Operazione accodata: %s", name)
        future = self._executor.submit(fn, *args, **kwargs)

        if on_done is not None:
            def _callback(done: Future) -> None:
                error = done.exception()
                if error is not None:
                    logger.error("Operazione '%s' fallita: %s", name, error)
                    result = TaskResult(name=name, ok=False, error=error)
                else:
                    result = TaskResult(name=name, ok=True, value=done.result())
                try:
                    on_done(result)
                except Exception:
                    logger.exception("Callback dell'operazione '%s' fallita", name)

            future.add_done_callback(_callback)

        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "TaskQueue":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)
