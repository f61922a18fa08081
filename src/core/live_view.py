# src/core/live_view.py
import logging
import threading
from typing import Callable, Iterable, Optional

from src.core.errors import DataReadError
from src.core.insight_store import InsightStore
from src.core.models import InsightRecord, InsightSummary, InsightType

logger = logging.getLogger(__name__)


def summarize(records: Iterable[InsightRecord]) -> InsightSummary:
    """Contadores por tipo e a mensagem mais recente. `records` vem em ordem decrescente de criação."""
    total = alerts = advices = unread = unread_alerts = unread_advices = 0
    latest: Optional[InsightRecord] = None
    for record in records:
        if record.type not in (InsightType.ALERT, InsightType.ADVICE):
            continue
        if latest is None:
            latest = record
        total += 1
        is_alert = record.type == InsightType.ALERT
        alerts += is_alert
        advices += not is_alert
        if not record.read:
            unread += 1
            unread_alerts += is_alert
            unread_advices += not is_alert
    return InsightSummary(
        total=total,
        alert_count=alerts,
        advice_count=advices,
        unread_count=unread,
        unread_alert_count=unread_alerts,
        unread_advice_count=unread_advices,
        latest_title=latest.title if latest else None,
        latest_body=latest.body if latest else None,
    )


class LiveAggregateView:
    """
    Assinatura contínua do InsightStore para um usuário.

    A cada mudança no store, relê os insights (Alert/Advice, mais recentes
    primeiro), recalcula o resumo e publica para a camada de apresentação.
    Nunca dispara geração.
    """

    def __init__(self, store: InsightStore, user_id: str, on_update: Callable[[InsightSummary], None]):
        self.store = store
        self.user_id = user_id
        self.on_update = on_update
        self.summary = InsightSummary()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> InsightSummary:
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_store_change)
        return self.refresh()

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def refresh(self) -> InsightSummary:
        # serializa releituras concorrentes para publicar sempre o estado mais novo por último
        with self._lock:
            try:
                records = self.store.list_for_user(self.user_id)
            except DataReadError as e:
                logger.warning(f"Resumo de insights de {self.user_id} não atualizado: {e}")
                return self.summary
            self.summary = summarize(records)
            self.on_update(self.summary)
            return self.summary

    def _on_store_change(self, user_id: str) -> None:
        if user_id == self.user_id:
            self.refresh()
