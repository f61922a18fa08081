# src/core/aggregator.py
import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Tuple

from supabase import Client

from src.core import db
from src.core.models import AggregateFigures, Expense, Income

logger = logging.getLogger(__name__)

# Janelas: semanal, mensal (30 dias), anual (365 dias) ou tudo
WINDOW_DAYS = {
    "weekly": 7,
    "monthly": 30,
    "yearly": 365,
    "all": None,
}


def window_bounds(window: str, now: Optional[datetime] = None) -> Tuple[Optional[datetime], datetime]:
    """Retorna (início, fim) da janela. Início None significa "desde sempre"."""
    key = (window or "all").lower()
    if key not in WINDOW_DAYS:
        raise ValueError(f"Janela desconhecida: {window!r}. Use uma de {sorted(WINDOW_DAYS)}")
    now = now or datetime.now(timezone.utc)
    days = WINDOW_DAYS[key]
    start = now - timedelta(days=days) if days is not None else None
    return start, now


def compute_figures(user_id: str, window: str, expenses: Iterable[Expense], incomes: Iterable[Income]) -> AggregateFigures:
    """Soma ganhos e gastos; o total por categoria vem só dos gastos."""
    total_income = 0.0
    income_count = 0
    for income in incomes:
        total_income += income.amount
        income_count += 1

    total_expense = 0.0
    expense_count = 0
    category_totals = defaultdict(float)
    for expense in expenses:
        total_expense += expense.amount
        expense_count += 1
        category_totals[expense.category] += expense.amount

    return AggregateFigures(
        user_id=user_id,
        window=window,
        total_income=total_income,
        total_expense=total_expense,
        category_totals=dict(category_totals),
        income_count=income_count,
        expense_count=expense_count,
    )


async def aggregate(supabase_client: Client, user_id: str, window: str = "all", now: Optional[datetime] = None) -> AggregateFigures:
    """
    Lê ganhos e gastos do usuário em paralelo e calcula os números agregados.

    Se qualquer uma das leituras falhar, o DataReadError sobe e nenhum número
    parcial é devolvido.
    """
    start, end = window_bounds(window, now)
    incomes, expenses = await asyncio.gather(
        asyncio.to_thread(db.get_incomes, supabase_client, user_id, start, end),
        asyncio.to_thread(db.get_expenses, supabase_client, user_id, start, end),
    )
    figures = compute_figures(user_id, window, expenses, incomes)
    logger.info(
        f"Agregado {user_id} ({window}): ganhos={figures.total_income:.2f} "
        f"gastos={figures.total_expense:.2f} categorias={len(figures.category_totals)}"
    )
    return figures
