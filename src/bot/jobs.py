# src/bot/jobs.py
import asyncio
import logging
from typing import List

from telegram.ext import ContextTypes

from src.core import db
from src.core.errors import DataReadError
from src.core.models import RunOutcome, RunStatus

logger = logging.getLogger(__name__)


async def _check_user(pipeline, user_id: str) -> List[RunOutcome]:
    # regras primeiro: os alertas gravados entram no histórico do prompt do Gemini
    rule_outcome = await pipeline.run_rules(user_id)
    return [rule_outcome, await pipeline.run(user_id)]


async def periodic_insight_check(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job repetitivo: alertas por regra e depois o pipeline do Gemini para todos os usuários com chat registrado."""
    supabase_client = context.bot_data["supabase_client"]
    pipeline = context.bot_data["insight_pipeline"]

    try:
        user_ids = await asyncio.to_thread(db.get_registered_user_ids, supabase_client)
    except DataReadError as e:
        logger.error(f"Verificação periódica cancelada: {e}")
        return

    results = await asyncio.gather(*(_check_user(pipeline, user_id) for user_id in user_ids))
    outcomes = [outcome for pair in results for outcome in pair]
    failed = {o.user_id for o in outcomes if o.status == RunStatus.FAILED}
    stored = sum(len(o.stored) for o in outcomes)
    logger.info(f"Verificação periódica: {len(user_ids)} usuário(s), {stored} insight(s) novo(s), {len(failed)} com falha")
