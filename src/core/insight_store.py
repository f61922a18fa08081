# src/core/insight_store.py
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Set

from supabase import Client

from src.config import DEDUP_WINDOW_DAYS
from src.core import db
from src.core.models import InsightCandidate, InsightRecord, InsightType

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]

VISIBLE_TYPES = (InsightType.ALERT, InsightType.ADVICE)


class InsightStore:
    """
    Log append-only dos insights entregues, por usuário.

    O pipeline só acrescenta registros; a única mutação permitida depois é o
    campo `read`. Cada escrita bem-sucedida avisa os assinantes (LiveAggregateView).
    """

    def __init__(self, supabase_client: Client, dedup_window_days: int = DEDUP_WINDOW_DAYS):
        self.supabase_client = supabase_client
        self.dedup_window_days = dedup_window_days
        self._listeners: List[ChangeListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Registra um assinante e devolve a função que cancela a assinatura."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, user_id: str) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(user_id)
            except Exception:
                logger.exception(f"Assinante do InsightStore falhou para o usuário {user_id}")

    def append(self, user_id: str, candidate: InsightCandidate) -> InsightRecord:
        record = db.add_insight(self.supabase_client, user_id, candidate)
        logger.info(f"Insight {record.id} ({record.type.value}) gravado para {user_id}")
        self._publish(user_id)
        return record

    def mark_read(self, user_id: str, insight_id: str) -> bool:
        updated = db.mark_insight_read(self.supabase_client, user_id, insight_id)
        if updated:
            self._publish(user_id)
        return updated

    def list_for_user(self, user_id: str, types=VISIBLE_TYPES) -> List[InsightRecord]:
        return db.get_insights(self.supabase_client, user_id, types=types)

    def recent(self, user_id: str, days: int, now: Optional[datetime] = None) -> List[InsightRecord]:
        now = now or datetime.now(timezone.utc)
        return db.get_insights(self.supabase_client, user_id, since=now - timedelta(days=days), types=VISIBLE_TYPES)

    def seen_hashes(self, user_id: str, now: Optional[datetime] = None, days: Optional[int] = None) -> Set[str]:
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=days or self.dedup_window_days)
        return db.get_insight_hashes(self.supabase_client, user_id, since=since)
