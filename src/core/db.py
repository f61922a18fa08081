# src/core/db.py
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Set

from supabase import create_client, Client

from src.config import SUPABASE_URL, SUPABASE_KEY
from src.core.errors import DataReadError, StoreWriteError
from src.core.models import Expense, Income, InsightCandidate, InsightRecord, InsightType
from src.utils.text_utils import parse_timestamp

logger = logging.getLogger(__name__)

EXPENSES_TABLE = "expenses"
INCOMES_TABLE = "incomes"
INSIGHTS_TABLE = "insights"
USERS_TABLE = "users"

INSIGHT_COLUMNS = "id,user_id,type,title,body,category,message_hash,created_at,read"


def get_supabase_client() -> Client:
    """Retorna uma instância do cliente Supabase."""
    return create_client(SUPABASE_URL, SUPABASE_KEY)


def _insight_from_row(row: dict) -> InsightRecord:
    return InsightRecord(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        type=InsightType.from_raw(row.get("type")),
        title=row.get("title") or "",
        body=row.get("body") or "",
        category=row.get("category"),
        content_hash=row.get("message_hash") or "",
        created_at=parse_timestamp(row.get("created_at")),
        read=bool(row.get("read", False)),
    )


# --- Funções para Gastos e Ganhos (somente leitura para o pipeline) ---
def get_expenses(supabase_client: Client, user_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[Expense]:
    """Obtém os gastos do usuário no intervalo [start, end]."""
    try:
        query = supabase_client.table(EXPENSES_TABLE).select('category,amount,note,receipt_ref,occurred_at').eq('user_id', user_id)
        if start is not None:
            query = query.gte('occurred_at', start.isoformat())
        if end is not None:
            query = query.lte('occurred_at', end.isoformat())
        response = query.execute()
    except Exception as e:
        logger.error(f"Erro ao obter gastos do Supabase para {user_id}: {e}")
        raise DataReadError(f"Falha ao ler gastos de {user_id}: {e}") from e

    return [
        Expense(
            category=row.get('category') or 'Outros',
            amount=float(row.get('amount') or 0.0),
            occurred_at=parse_timestamp(row.get('occurred_at')),
            note=row.get('note'),
            receipt_ref=row.get('receipt_ref'),
        )
        for row in response.data
    ]


def get_incomes(supabase_client: Client, user_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[Income]:
    """Obtém os ganhos do usuário no intervalo [start, end]."""
    try:
        query = supabase_client.table(INCOMES_TABLE).select('source,amount,note,document_ref,occurred_at').eq('user_id', user_id)
        if start is not None:
            query = query.gte('occurred_at', start.isoformat())
        if end is not None:
            query = query.lte('occurred_at', end.isoformat())
        response = query.execute()
    except Exception as e:
        logger.error(f"Erro ao obter ganhos do Supabase para {user_id}: {e}")
        raise DataReadError(f"Falha ao ler ganhos de {user_id}: {e}") from e

    return [
        Income(
            source=row.get('source') or '',
            amount=float(row.get('amount') or 0.0),
            occurred_at=parse_timestamp(row.get('occurred_at')),
            note=row.get('note'),
            document_ref=row.get('document_ref'),
        )
        for row in response.data
    ]


# --- Funções para Insights ---
def add_insight(supabase_client: Client, user_id: str, candidate: InsightCandidate) -> InsightRecord:
    """Grava um novo insight (id e created_at são gerados pelo banco, read = false)."""
    try:
        response = supabase_client.table(INSIGHTS_TABLE).insert({
            "user_id": user_id,
            "type": candidate.type.value,
            "title": candidate.title,
            "body": candidate.body,
            "category": candidate.category,
            "message_hash": candidate.content_hash,
            "read": False,
        }).execute()
    except Exception as e:
        logger.error(f"Erro ao adicionar insight ao Supabase: {e}")
        raise StoreWriteError(f"Falha ao gravar insight '{candidate.title}': {e}") from e

    if not response.data:
        raise StoreWriteError(f"Supabase não retornou o insight gravado '{candidate.title}'")
    return _insight_from_row(response.data[0])


def get_insights(supabase_client: Client, user_id: str, since: Optional[datetime] = None,
                 types: Optional[Iterable[InsightType]] = None, limit: Optional[int] = None) -> List[InsightRecord]:
    """Obtém os insights do usuário, do mais recente para o mais antigo."""
    try:
        query = supabase_client.table(INSIGHTS_TABLE).select(INSIGHT_COLUMNS).eq('user_id', user_id)
        if types is not None:
            query = query.in_('type', [t.value for t in types])
        if since is not None:
            query = query.gte('created_at', since.isoformat())
        query = query.order('created_at', desc=True)
        if limit is not None:
            query = query.limit(limit)
        response = query.execute()
    except Exception as e:
        logger.error(f"Erro ao obter insights do Supabase para {user_id}: {e}")
        raise DataReadError(f"Falha ao ler insights de {user_id}: {e}") from e
    return [_insight_from_row(row) for row in response.data]


def get_insight_hashes(supabase_client: Client, user_id: str, since: Optional[datetime] = None) -> Set[str]:
    """Obtém os hashes de conteúdo já entregues ao usuário desde `since`."""
    try:
        query = supabase_client.table(INSIGHTS_TABLE).select('message_hash').eq('user_id', user_id)
        if since is not None:
            query = query.gte('created_at', since.isoformat())
        response = query.execute()
    except Exception as e:
        logger.error(f"Erro ao obter hashes de insights para {user_id}: {e}")
        raise DataReadError(f"Falha ao ler hashes de {user_id}: {e}") from e
    return {row['message_hash'] for row in response.data if row.get('message_hash')}


def mark_insight_read(supabase_client: Client, user_id: str, insight_id: str) -> bool:
    """Marca um insight como lido. Só o campo `read` é alterado."""
    try:
        response = supabase_client.table(INSIGHTS_TABLE).update({'read': True}).eq('id', insight_id).eq('user_id', user_id).execute()
        return bool(response.data)
    except Exception as e:
        logger.error(f"Erro ao marcar insight {insight_id} como lido: {e}")
        return False


# --- Funções para o canal de notificação (chat do Telegram) ---
def register_device_channel(supabase_client: Client, user_id: str, chat_id: str) -> bool:
    """Associa o chat do Telegram ao usuário."""
    try:
        supabase_client.table(USERS_TABLE).upsert({"id": user_id, "telegram_chat_id": str(chat_id)}).execute()
        return True
    except Exception as e:
        logger.error(f"Erro ao registrar chat {chat_id} para {user_id}: {e}")
        return False


def get_device_channel(supabase_client: Client, user_id: str) -> Optional[str]:
    """Obtém o chat do Telegram registrado para o usuário."""
    try:
        response = supabase_client.table(USERS_TABLE).select('telegram_chat_id').eq('id', user_id).limit(1).execute()
    except Exception as e:
        logger.error(f"Erro ao obter canal do usuário {user_id}: {e}")
        raise DataReadError(f"Falha ao ler canal de {user_id}: {e}") from e
    if not response.data:
        return None
    return response.data[0].get('telegram_chat_id')


def get_registered_user_ids(supabase_client: Client) -> List[str]:
    """Lista os usuários que têm um chat registrado (alvo da verificação periódica)."""
    try:
        response = supabase_client.table(USERS_TABLE).select('id,telegram_chat_id').execute()
    except Exception as e:
        logger.error(f"Erro ao listar usuários do Supabase: {e}")
        raise DataReadError(f"Falha ao listar usuários: {e}") from e
    return [str(row['id']) for row in response.data if row.get('telegram_chat_id')]
