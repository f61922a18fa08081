# src/core/pipeline.py
"""
Pipeline de insights: RunGate -> Aggregator -> PromptBuilder -> Gemini ->
ResponseParser -> Deduplicator -> InsightStore -> Notifier.

Cada etapa é um await explícito. Falhas antes da deduplicação abortam a
execução inteira; falhas depois (gravação, notificação) ficam isoladas por
candidato. O resultado sempre chega a quem disparou como um RunOutcome.

Os alertas por regra (src/core/rules.py) trocam Aggregator -> Gemini ->
ResponseParser por uma leitura direta dos lançamentos e seguem o mesmo
caminho a partir do Deduplicator.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from supabase import Client

from src.config import INSIGHT_WINDOW, PRIOR_INSIGHT_DAYS, UI_INSIGHT_COUNT
from src.core import db, rules
from src.core.aggregator import aggregate
from src.core.ai import GenerationClient
from src.core.dedup import RecentHashCache, filter_new
from src.core.errors import InsightPipelineError, StoreWriteError
from src.core.insight_store import InsightStore
from src.core.models import InsightRecord, RunOutcome, RunStatus, UiInsight
from src.core.notifier import Notifier
from src.core.parser import parse_candidates, parse_ui_insights
from src.core.prompts import build_alert_advice_prompt, build_ui_insights_prompt, prompt_history
from src.core.run_gate import RunGate

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[RunOutcome], None]
Stages = Callable[[str], Awaitable[RunOutcome]]


class InsightPipeline:
    def __init__(self, supabase_client: Client, store: InsightStore, generation_client: GenerationClient,
                 notifier: Notifier, run_gate: Optional[RunGate] = None,
                 hash_cache: Optional[RecentHashCache] = None, window: str = INSIGHT_WINDOW,
                 prior_days: int = PRIOR_INSIGHT_DAYS, rule_gate: Optional[RunGate] = None):
        self.supabase_client = supabase_client
        self.store = store
        self.generation_client = generation_client
        self.notifier = notifier
        self.run_gate = run_gate or RunGate()
        self.rule_gate = rule_gate or RunGate()
        self.hash_cache = hash_cache or RecentHashCache()
        self.window = window
        self.prior_days = prior_days

    async def run(self, user_id: str, on_complete: Optional[CompletionCallback] = None) -> RunOutcome:
        """Dispara uma execução para o usuário. Nunca levanta exceção: o resultado vem no RunOutcome."""
        return await self._gated(self.run_gate, user_id, self._run_stages, on_complete)

    async def run_rules(self, user_id: str, on_complete: Optional[CompletionCallback] = None,
                        now: Optional[datetime] = None) -> RunOutcome:
        """
        Alertas determinísticos (saldo negativo, orçamento estourado, gasto alto...).

        Não chamam o Gemini, mas passam pela mesma deduplicação, gravação e
        notificação. Usam um RunGate próprio para não bloquear a geração.
        """
        return await self._gated(self.rule_gate, user_id, lambda uid: self._rule_stages(uid, now), on_complete)

    async def _gated(self, gate: RunGate, user_id: str, stages: Stages,
                     on_complete: Optional[CompletionCallback]) -> RunOutcome:
        ticket = gate.try_acquire(user_id)
        if ticket is None:
            logger.debug(f"Execução já em andamento para {user_id}. Ignorando este disparo.")
            outcome = RunOutcome(user_id, RunStatus.SKIPPED_BUSY)
            self._complete(on_complete, outcome)
            return outcome

        try:
            outcome = await stages(user_id)
        except InsightPipelineError as e:
            logger.error(f"Execução de insights falhou para {user_id}: {e}")
            outcome = RunOutcome(user_id, RunStatus.FAILED, error=e)
        except Exception as e:
            logger.exception(f"Erro inesperado no pipeline de insights para {user_id}")
            outcome = RunOutcome(user_id, RunStatus.FAILED, error=e)
        finally:
            gate.release(ticket)

        self._complete(on_complete, outcome)
        return outcome

    def _complete(self, on_complete: Optional[CompletionCallback], outcome: RunOutcome) -> None:
        if on_complete is None:
            return
        try:
            on_complete(outcome)
        except Exception:
            logger.exception(f"Callback de conclusão falhou para {outcome.user_id}")

    async def _run_stages(self, user_id: str) -> RunOutcome:
        figures = await aggregate(self.supabase_client, user_id, self.window)
        if figures.is_empty:
            logger.info(f"Sem ganhos nem gastos para {user_id}. Pulando a geração.")
            return RunOutcome(user_id, RunStatus.SKIPPED_EMPTY)

        prior, stored_hashes = await asyncio.gather(
            asyncio.to_thread(self.store.recent, user_id, self.prior_days),
            asyncio.to_thread(self.store.seen_hashes, user_id),
        )
        prompt = build_alert_advice_prompt(figures, prompt_history(prior))
        logger.debug(f"Prompt enviado ao Gemini para {user_id}:\n{prompt}")

        body = await asyncio.to_thread(self.generation_client.generate, prompt)
        candidates = parse_candidates(body)

        accepted, duplicates = filter_new(candidates, stored_hashes | self.hash_cache.get(user_id))
        if duplicates:
            logger.info(f"{duplicates} insight(s) repetido(s) descartado(s) para {user_id}")

        stored = await self._store_and_notify(user_id, accepted)
        return RunOutcome(user_id, RunStatus.COMPLETED, stored=stored, duplicates=duplicates)

    async def _rule_stages(self, user_id: str, now: Optional[datetime] = None) -> RunOutcome:
        now = now or datetime.now(timezone.utc)
        incomes, expenses, prior, stored_hashes = await asyncio.gather(
            asyncio.to_thread(db.get_incomes, self.supabase_client, user_id),
            asyncio.to_thread(db.get_expenses, self.supabase_client, user_id),
            asyncio.to_thread(self.store.recent, user_id, rules.MONTH_HISTORY_DAYS, now),
            asyncio.to_thread(self.store.seen_hashes, user_id, now, rules.RULE_DEDUP_DAYS),
        )
        if not incomes and not expenses:
            return RunOutcome(user_id, RunStatus.SKIPPED_EMPTY)

        candidates = rules.evaluate(user_id, expenses, incomes, prior, now)
        accepted, duplicates = filter_new(candidates, stored_hashes | self.hash_cache.get(user_id))
        logger.info(f"Regras para {user_id}: {len(candidates)} disparada(s), {duplicates} já conhecida(s)")

        stored = await self._store_and_notify(user_id, accepted)
        return RunOutcome(user_id, RunStatus.COMPLETED, stored=stored, duplicates=duplicates)

    async def _store_and_notify(self, user_id: str, accepted) -> List[InsightRecord]:
        stored = []
        for candidate in accepted:
            try:
                record = await asyncio.to_thread(self.store.append, user_id, candidate)
            except StoreWriteError as e:
                logger.error(f"Insight '{candidate.title}' não gravado para {user_id}: {e}")
                continue
            self.hash_cache.add(user_id, record.content_hash)
            stored.append(record)
            await self.notifier.notify(record)
        return stored

    async def generate_ui_insights(self, user_id: str, window: str = "weekly", count: int = UI_INSIGHT_COUNT) -> List[UiInsight]:
        """
        Dicas curtas para exibir na hora. Não passam pelo RunGate nem são gravadas.

        Erros do pipeline sobem para quem chamou.
        """
        figures = await aggregate(self.supabase_client, user_id, window)
        if figures.is_empty:
            return []
        prior = await asyncio.to_thread(self.store.recent, user_id, self.prior_days)
        prompt = build_ui_insights_prompt(figures, prompt_history(prior), count)
        body = await asyncio.to_thread(self.generation_client.generate, prompt)
        return parse_ui_insights(body)
