# src/core/dedup.py
import threading
import time
from typing import Callable, Dict, Iterable, List, Set, Tuple

from src.config import DEDUP_WINDOW_DAYS
from src.core.models import InsightCandidate


def filter_new(candidates: Iterable[InsightCandidate], seen_hashes: Set[str]) -> Tuple[List[InsightCandidate], int]:
    """
    Remove candidatos cujo hash já foi entregue ao usuário.

    Repetições dentro da mesma resposta também caem. Retorna (aceitos, descartados).
    """
    seen = set(seen_hashes)
    accepted = []
    dropped = 0
    for candidate in candidates:
        if candidate.content_hash in seen:
            dropped += 1
            continue
        seen.add(candidate.content_hash)
        accepted.append(candidate)
    return accepted, dropped


class RecentHashCache:
    """Hashes gravados recentemente, por usuário, mantidos em memória com validade."""

    def __init__(self, ttl_seconds: float = DEDUP_WINDOW_DAYS * 86400, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Dict[str, float]] = {}
        self._lock = threading.Lock()

    def add(self, user_id: str, content_hash: str) -> None:
        with self._lock:
            self._entries.setdefault(user_id, {})[content_hash] = self._clock() + self.ttl_seconds

    def get(self, user_id: str) -> Set[str]:
        now = self._clock()
        with self._lock:
            entries = self._entries.get(user_id, {})
            for expired in [h for h, expires_at in entries.items() if expires_at <= now]:
                del entries[expired]
            return set(entries)
