# src/core/notifier.py
import asyncio
import logging
from typing import Optional

from supabase import Client
from telegram import Bot
from telegram.error import TelegramError

from src.core import db
from src.core.errors import DataReadError, NotifyDeliveryError
from src.core.models import InsightRecord, InsightType

logger = logging.getLogger(__name__)

TYPE_ICONS = {
    InsightType.ALERT: "⚠️",
    InsightType.ADVICE: "💡",
}

TYPE_LABELS = {
    InsightType.ALERT: "Alerta financeiro",
    InsightType.ADVICE: "Dica financeira",
}


def format_notification(record: InsightRecord) -> str:
    """Texto da notificação: ícone, tipo, categoria, título e corpo (sem precisar buscar de novo)."""
    header = f"{TYPE_ICONS[record.type]} {TYPE_LABELS[record.type]}"
    if record.category:
        header += f" · {record.category}"
    return f"{header}\n\n{record.title}\n{record.body}"


class Notifier:
    """Envia cada insight novo para o chat do Telegram registrado pelo usuário."""

    def __init__(self, bot: Bot, supabase_client: Client):
        self.bot = bot
        self.supabase_client = supabase_client

    async def _resolve_channel(self, user_id: str) -> Optional[str]:
        return await asyncio.to_thread(db.get_device_channel, self.supabase_client, user_id)

    async def _deliver(self, chat_id: str, record: InsightRecord) -> None:
        try:
            await self.bot.send_message(chat_id=chat_id, text=format_notification(record))
        except TelegramError as e:
            raise NotifyDeliveryError(f"Falha ao notificar o chat {chat_id}: {e}") from e

    async def notify(self, record: InsightRecord) -> bool:
        """Melhor esforço: falhas são registradas no log e nunca sobem."""
        try:
            chat_id = await self._resolve_channel(record.user_id)
            if not chat_id:
                logger.info(f"Usuário {record.user_id} sem chat registrado; notificação de {record.id} ignorada")
                return False
            await self._deliver(chat_id, record)
        except (NotifyDeliveryError, DataReadError) as e:
            logger.warning(f"Notificação do insight {record.id} não entregue: {e}")
            return False
        logger.info(f"Notificação do insight {record.id} enviada para {record.user_id}")
        return True
