# src/core/run_gate.py
import threading
import time
from typing import Callable, Dict, Optional

from src.config import RUN_GATE_WINDOW_SECONDS


class RunTicket:
    """Comprovante de uma execução aceita pelo RunGate."""

    __slots__ = ("user_id", "expires_at")

    def __init__(self, user_id: str, expires_at: float):
        self.user_id = user_id
        self.expires_at = expires_at


class RunGate:
    """
    Janela de exclusão por usuário: Idle -> Running -> Idle.

    Volta para Idle quando a execução termina (release) ou quando a janela
    expira, o que vier primeiro. É uma proteção de vivacidade, não um lock:
    depois da expiração uma nova execução pode sobrepor uma execução lenta.
    """

    def __init__(self, window_seconds: float = RUN_GATE_WINDOW_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._running: Dict[str, RunTicket] = {}
        self._lock = threading.Lock()

    def try_acquire(self, user_id: str) -> Optional[RunTicket]:
        """Verifica e marca em uma única operação atômica. None se já estiver rodando."""
        with self._lock:
            now = self._clock()
            current = self._running.get(user_id)
            if current is not None and current.expires_at > now:
                return None
            ticket = RunTicket(user_id, now + self.window_seconds)
            self._running[user_id] = ticket
            return ticket

    def release(self, ticket: RunTicket) -> None:
        """Libera a execução. Um ticket vencido não derruba a execução que o substituiu."""
        with self._lock:
            if self._running.get(ticket.user_id) is ticket:
                del self._running[ticket.user_id]

    def is_running(self, user_id: str) -> bool:
        with self._lock:
            current = self._running.get(user_id)
            return current is not None and current.expires_at > self._clock()
