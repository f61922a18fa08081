# src/core/prompts.py
from typing import List, Sequence

from src.core.models import AggregateFigures, InsightRecord
from src.utils.text_utils import format_currency

WINDOW_LABELS = {
    "weekly": "nos últimos 7 dias",
    "monthly": "nos últimos 30 dias",
    "yearly": "nos últimos 365 dias",
    "all": "em todo o histórico",
}

UI_ICONS = ("alert", "advice", "info", "trend", "progress")


def describe_figures(figures: AggregateFigures) -> str:
    """Escreve os números agregados como frases simples."""
    period = WINDOW_LABELS.get(figures.window, figures.window)
    lines = [
        f"O total de ganhos do usuário {period} é {format_currency(figures.total_income)} ({figures.income_count} registros).",
        f"O total de gastos {period} é {format_currency(figures.total_expense)} ({figures.expense_count} registros).",
        f"O saldo (ganhos - gastos) é {format_currency(figures.balance)}.",
    ]
    if figures.balance_status == "negative":
        lines.append(f"O saldo está NEGATIVO: os gastos superam os ganhos em {format_currency(-figures.balance)}.")
    elif figures.balance_status == "positive":
        lines.append("O saldo está positivo.")
    else:
        lines.append("Os ganhos e gastos estão empatados.")

    top = figures.top_category
    if top is not None:
        lines.append(f"A categoria com maior gasto é {top[0]}, com {format_currency(top[1])}.")
        lines.append("Gastos por categoria:")
        for category, amount in sorted(figures.category_totals.items(), key=lambda item: (-item[1], item[0])):
            lines.append(f"- {category}: {format_currency(amount)}")
    return "\n".join(lines)


def _prior_section(prior_insights: Sequence[InsightRecord]) -> str:
    if not prior_insights:
        return "Não há insights anteriores."
    return "\n".join(f"- {record.title}: {record.body}" for record in prior_insights)


def build_alert_advice_prompt(figures: AggregateFigures, prior_insights: Sequence[InsightRecord] = ()) -> str:
    """Prompt do modo alerta/conselho: exatamente 1 Alert + 1 Advice em um array JSON."""
    negative_clause = ""
    if figures.balance_status == "negative":
        negative_clause = (
            f"- Como o saldo é negativo, o Advice deve sugerir reduzir gastos ou aumentar a renda "
            f"para cobrir a diferença de {format_currency(-figures.balance)}.\n"
        )

    return f"""Você é um assistente financeiro. Sua única tarefa é analisar os números abaixo e retornar APENAS um array JSON.
Não adicione nenhum texto explicativo, comentários ou formatação extra.

Dados do usuário:
{describe_figures(figures)}

Insights já enviados ao usuário (NÃO repita nenhum deles, nem com outras palavras):
{_prior_section(prior_insights)}

Regras:
- Retorne exatamente 2 objetos: um com "type": "Alert" e outro com "type": "Advice".
- Cada objeto deve ter exatamente os campos "type", "title", "body" e "category".
- "title" é curto (até 6 palavras); "body" tem 1 ou 2 frases e cita os valores exatos acima.
- "category" é o nome de uma categoria de gasto citada acima, ou null se for geral.
{negative_clause}- Não use markdown, não use blocos de código (```), responda só com o JSON puro.

Formato:
[{{"type": "Alert", "title": "...", "body": "...", "category": "..."}}, {{"type": "Advice", "title": "...", "body": "...", "category": null}}]
"""


def build_ui_insights_prompt(figures: AggregateFigures, prior_insights: Sequence[InsightRecord] = (), count: int = 3) -> str:
    """Prompt do modo de dicas para a interface: N objetos com "text" e "icon"."""
    icons = "|".join(UI_ICONS)
    return f"""Você é um assistente financeiro. Gere {count} dicas curtas sobre a atividade financeira do usuário.
Sua resposta deve ser APENAS um array JSON, sem nenhum texto extra.

Dados do usuário:
{describe_figures(figures)}

Evite repetir estes insights já enviados:
{_prior_section(prior_insights)}

Regras:
- Retorne exatamente {count} objetos, cada um com exatamente os campos "text" e "icon".
- "text" tem uma frase e cita valores reais dos dados acima.
- "icon" é um destes valores: {icons}.
- Não use markdown, não use blocos de código (```), responda só com o JSON puro.

Formato:
[{{"text": "...", "icon": "{UI_ICONS[0]}"}}]
"""


def prompt_history(records: Sequence[InsightRecord], limit: int = 20) -> List[InsightRecord]:
    """Limita o histórico enviado ao modelo aos registros mais recentes (já vêm em ordem decrescente)."""
    return list(records[:limit])
