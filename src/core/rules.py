# src/core/rules.py
"""
Alertas determinísticos calculados direto dos lançamentos, sem passar pelo Gemini.

Cada regra devolve no máximo um InsightCandidate por condição. O hash cobre o
título e uma chave de período (mês ou data do lançamento): a mesma condição
gera um único insight por período, mesmo que os valores do corpo mudem.
"""
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

from src.config import RULE_LOOKBACK_DAYS
from src.core.aggregator import compute_figures
from src.core.models import AggregateFigures, Expense, Income, InsightCandidate, InsightRecord, InsightType
from src.utils.text_utils import content_hash, format_currency

OVERSPENDING_FACTOR = 1.4
OVERSPENDING_HISTORY_DAYS = 28
CATEGORY_SPIKE_FACTOR = 2.0
CATEGORY_SPIKE_DAYS = 7
INCOME_DROP_FACTOR = 0.5
INCOME_HISTORY_SIZE = 3
RECOVERY_GROWTH_FACTOR = 1.3

# hashes de regras mensais precisam sobreviver ao mês inteiro seguinte
RULE_DEDUP_DAYS = 62
MONTH_HISTORY_DAYS = 31

BUDGET_CATEGORY = "Orçamento"
INCOME_CATEGORY = "Renda"

NEGATIVE_BALANCE_TITLE = "Saldo negativo no mês"
BUDGET_BREACH_TITLE = "Orçamento estourado no mês passado"
INCOME_DROP_TITLE = "Queda na renda"
RECOVERY_TITLE = "Saldo positivo de novo!"
STRONG_RECOVERY_TITLE = "Recuperação financeira forte!"


def month_start(moment: datetime) -> datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def previous_month_start(moment: datetime) -> datetime:
    return month_start(month_start(moment) - timedelta(days=1))


def _candidate(type_: InsightType, title: str, body: str, category: Optional[str], period_key: str) -> InsightCandidate:
    return InsightCandidate(type_, title, body, category, content_hash(title, period_key))


def _between(items, start: datetime, end: Optional[datetime] = None) -> list:
    """Lançamentos com data em [start, end). Sem data ficam de fora das regras por período."""
    return [
        item for item in items
        if item.occurred_at is not None and item.occurred_at >= start and (end is None or item.occurred_at < end)
    ]


def _month_figures(user_id: str, expenses, incomes, start: datetime, end: Optional[datetime] = None) -> AggregateFigures:
    return compute_figures(user_id, "monthly", _between(expenses, start, end), _between(incomes, start, end))


def _recent(items, now: datetime, lookback_days: int) -> list:
    return _between(items, now - timedelta(days=lookback_days))


def _dated_desc(items) -> list:
    return sorted((i for i in items if i.occurred_at is not None), key=lambda i: i.occurred_at, reverse=True)


def check_negative_balance(user_id: str, expenses: Sequence[Expense], incomes: Sequence[Income],
                           now: datetime) -> Optional[InsightCandidate]:
    """Gastos do mês corrente acima da renda do mês (só conta se houve alguma renda)."""
    start = month_start(now)
    figures = _month_figures(user_id, expenses, incomes, start)
    if figures.total_income == 0 or figures.balance_status != "negative":
        return None
    body = (
        f"Seus gastos deste mês passaram da sua renda. "
        f"Gastou {format_currency(figures.total_expense)}, ganhou {format_currency(figures.total_income)}."
    )
    return _candidate(InsightType.ALERT, NEGATIVE_BALANCE_TITLE, body, BUDGET_CATEGORY, start.date().isoformat())


def check_budget_breach(user_id: str, expenses: Sequence[Expense], incomes: Sequence[Income],
                        now: datetime) -> Optional[InsightCandidate]:
    """Mesmo critério do saldo negativo, aplicado ao mês fechado anterior."""
    start = previous_month_start(now)
    figures = _month_figures(user_id, expenses, incomes, start, month_start(now))
    if figures.total_income == 0 or figures.balance_status != "negative":
        return None
    body = (
        f"Você gastou {format_currency(figures.total_expense)} mas ganhou só "
        f"{format_currency(figures.total_income)} no mês passado."
    )
    return _candidate(InsightType.ALERT, BUDGET_BREACH_TITLE, body, BUDGET_CATEGORY, start.date().isoformat())


def _category_average(expenses: Sequence[Expense], expense: Expense, days: int) -> Optional[float]:
    """Média da categoria nos `days` dias até o lançamento (inclusive). None com menos de 2 registros."""
    start = expense.occurred_at - timedelta(days=days)
    history = [
        e.amount for e in expenses
        if e.category == expense.category and e.occurred_at is not None and start <= e.occurred_at <= expense.occurred_at
    ]
    if len(history) < 2:
        return None
    return sum(history) / len(history)


def check_overspending(expenses: Sequence[Expense], now: datetime,
                       lookback_days: int = RULE_LOOKBACK_DAYS) -> List[InsightCandidate]:
    """Lançamento recente pelo menos 40% acima da média de 4 semanas da categoria."""
    candidates = []
    for expense in _recent(expenses, now, lookback_days):
        average = _category_average(expenses, expense, OVERSPENDING_HISTORY_DAYS)
        if average is None or expense.amount < average * OVERSPENDING_FACTOR:
            continue
        title = f"Gasto alto em {expense.category}"
        body = (
            f"Você gastou {format_currency(expense.amount)} em {expense.category}. "
            f"Sua média de 4 semanas é ~{format_currency(average)}."
        )
        key = f"{expense.occurred_at.date().isoformat()}:{expense.amount:.2f}"
        candidates.append(_candidate(InsightType.ALERT, title, body, expense.category, key))
    return candidates


def check_category_spike(expenses: Sequence[Expense], now: datetime,
                         lookback_days: int = RULE_LOOKBACK_DAYS) -> List[InsightCandidate]:
    """Lançamento recente com o dobro (ou mais) da média de 7 dias da categoria."""
    candidates = []
    for expense in _recent(expenses, now, lookback_days):
        average = _category_average(expenses, expense, CATEGORY_SPIKE_DAYS)
        if average is None or expense.amount < average * CATEGORY_SPIKE_FACTOR:
            continue
        title = f"Pico de gastos em {expense.category}"
        body = (
            f"Você gastou {format_currency(expense.amount)} em {expense.category}. "
            f"Média de 7 dias: ~{format_currency(average)}."
        )
        key = f"{expense.occurred_at.date().isoformat()}:{expense.amount:.2f}"
        candidates.append(_candidate(InsightType.ALERT, title, body, expense.category, key))
    return candidates


def check_new_category(expenses: Sequence[Expense], now: datetime,
                       lookback_days: int = RULE_LOOKBACK_DAYS) -> List[InsightCandidate]:
    """Primeiro gasto de todos numa categoria."""
    counts = {}
    for expense in expenses:
        counts[expense.category] = counts.get(expense.category, 0) + 1

    candidates = []
    for expense in _recent(expenses, now, lookback_days):
        if counts[expense.category] > 1:
            continue
        title = f"Nova categoria: {expense.category}"
        body = f"Você gastou {format_currency(expense.amount)} em \"{expense.category}\" pela primeira vez."
        candidates.append(_candidate(InsightType.ALERT, title, body, expense.category, expense.occurred_at.date().isoformat()))
    return candidates


def check_income_drop(incomes: Sequence[Income], now: datetime,
                      lookback_days: int = RULE_LOOKBACK_DAYS) -> Optional[InsightCandidate]:
    """Renda mais recente abaixo da metade da média das anteriores."""
    dated = _dated_desc(incomes)
    if len(dated) < 2:
        return None
    latest, past = dated[0], dated[1:1 + INCOME_HISTORY_SIZE]
    if latest.occurred_at < now - timedelta(days=lookback_days):
        return None
    average = sum(i.amount for i in past) / len(past)
    if average == 0 or latest.amount >= average * INCOME_DROP_FACTOR:
        return None
    body = (
        f"Sua nova renda de {format_currency(latest.amount)} é menos da metade "
        f"da sua média recente de ~{format_currency(average)}."
    )
    key = f"{latest.occurred_at.date().isoformat()}:{latest.amount:.2f}"
    return _candidate(InsightType.ALERT, INCOME_DROP_TITLE, body, INCOME_CATEGORY, key)


def check_balance_recovery(user_id: str, expenses: Sequence[Expense], incomes: Sequence[Income],
                           prior_records: Iterable[InsightRecord], now: datetime) -> Optional[InsightCandidate]:
    """Dica quando o mês volta ao positivo depois de um alerta de saldo negativo no mesmo mês."""
    start = month_start(now)
    figures = _month_figures(user_id, expenses, incomes, start)
    if figures.balance_status != "positive":
        return None
    had_negative_alert = any(
        r.title == NEGATIVE_BALANCE_TITLE and r.created_at is not None and r.created_at >= start
        for r in prior_records
    )
    if not had_negative_alert:
        return None

    past = _dated_desc(incomes)[1:1 + INCOME_HISTORY_SIZE]
    average = sum(i.amount for i in past) / max(len(past), 1)
    income, expense = format_currency(figures.total_income), format_currency(figures.total_expense)
    if figures.total_income > average * RECOVERY_GROWTH_FACTOR:
        title = STRONG_RECOVERY_TITLE
        body = f"Ótimo! Sua renda ({income}) subiu bastante e já supera seus gastos ({expense}). Continue assim!"
    else:
        title = RECOVERY_TITLE
        body = f"Muito bem! Sua renda ({income}) voltou a superar os gastos ({expense}) neste mês."
    return _candidate(InsightType.ADVICE, title, body, BUDGET_CATEGORY, start.date().isoformat())


def evaluate(user_id: str, expenses: Sequence[Expense], incomes: Sequence[Income],
             prior_records: Sequence[InsightRecord] = (), now: Optional[datetime] = None,
             lookback_days: int = RULE_LOOKBACK_DAYS) -> List[InsightCandidate]:
    """Roda todas as regras e devolve os candidatos na ordem: mensais, por lançamento, renda, recuperação."""
    now = now or datetime.now(timezone.utc)
    candidates = [
        check_negative_balance(user_id, expenses, incomes, now),
        check_budget_breach(user_id, expenses, incomes, now),
    ]
    candidates += check_overspending(expenses, now, lookback_days)
    candidates += check_category_spike(expenses, now, lookback_days)
    candidates += check_new_category(expenses, now, lookback_days)
    candidates.append(check_income_drop(incomes, now, lookback_days))
    candidates.append(check_balance_recovery(user_id, expenses, incomes, prior_records, now))
    return [c for c in candidates if c is not None]
