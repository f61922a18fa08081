# src/core/models.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# Os dados chegam do Supabase como dicionários; estas classes são a forma
# tipada com que o pipeline de insights trabalha internamente.


class InsightType(str, Enum):
    ALERT = "Alert"
    ADVICE = "Advice"

    @classmethod
    def from_raw(cls, value: Any) -> "InsightType":
        """Converte o valor vindo do modelo/banco. Ausente ou desconhecido vira Advice."""
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return cls.ADVICE


class PromptMode(str, Enum):
    ALERT_ADVICE = "alert_advice"
    UI = "ui"


@dataclass(frozen=True)
class Expense:
    category: str
    amount: float
    occurred_at: Optional[datetime] = None
    note: Optional[str] = None
    receipt_ref: Optional[str] = None


@dataclass(frozen=True)
class Income:
    source: str
    amount: float
    occurred_at: Optional[datetime] = None
    note: Optional[str] = None
    document_ref: Optional[str] = None


@dataclass(frozen=True)
class AggregateFigures:
    user_id: str
    window: str
    total_income: float
    total_expense: float
    category_totals: Dict[str, float] = field(default_factory=dict)
    income_count: int = 0
    expense_count: int = 0

    @property
    def balance(self) -> float:
        return self.total_income - self.total_expense

    @property
    def is_empty(self) -> bool:
        return self.total_income == 0 and self.total_expense == 0

    @property
    def balance_status(self) -> str:
        if self.balance < 0:
            return "negative"
        if self.balance > 0:
            return "positive"
        return "even"

    @property
    def top_category(self) -> Optional[Tuple[str, float]]:
        """Categoria com maior gasto (empate resolvido pelo nome)."""
        if not self.category_totals:
            return None
        return max(self.category_totals.items(), key=lambda item: (item[1], item[0]))


@dataclass(frozen=True)
class InsightCandidate:
    type: InsightType
    title: str
    body: str
    category: Optional[str]
    content_hash: str


@dataclass(frozen=True)
class UiInsight:
    text: str
    icon: str = "default"


@dataclass(frozen=True)
class InsightRecord:
    id: str
    user_id: str
    type: InsightType
    title: str
    body: str
    category: Optional[str]
    content_hash: str
    created_at: datetime
    read: bool = False


@dataclass(frozen=True)
class InsightSummary:
    total: int = 0
    alert_count: int = 0
    advice_count: int = 0
    unread_count: int = 0
    unread_alert_count: int = 0
    unread_advice_count: int = 0
    latest_title: Optional[str] = None
    latest_body: Optional[str] = None

    @property
    def latest_message(self) -> Optional[str]:
        if self.latest_title is None:
            return None
        return f"{self.latest_title}: {self.latest_body}"


class RunStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED_EMPTY = "skipped_empty"
    SKIPPED_BUSY = "skipped_busy"
    FAILED = "failed"


@dataclass
class RunOutcome:
    user_id: str
    status: RunStatus
    stored: List[InsightRecord] = field(default_factory=list)
    duplicates: int = 0
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.status != RunStatus.FAILED

    @property
    def retryable(self) -> bool:
        return bool(self.error is not None and getattr(self.error, "retryable", False))
