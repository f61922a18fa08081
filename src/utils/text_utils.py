# src/utils/text_utils.py
import hashlib
import re
from datetime import datetime, timezone
from typing import Any, Optional

_LEADING_FENCE_RE = re.compile(r"^\s*`{3,}[ \t]*(?:json)?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"`{3,}\s*$")


def strip_code_fences(text: str) -> str:
    """Remove cercas de markdown (```json ... ```) em volta da resposta do modelo.
    Ex: "```json\\n[1]\\n```" -> "[1]"
    Ex: "[1]" -> "[1]" (texto já limpo não muda)
    Ex: "```[1]" -> "[1]" (cerca só de um lado também é removida)
    Crases dentro do texto (ex: num "body") ficam intactas.
    """
    if not text:
        return ""
    text = _LEADING_FENCE_RE.sub("", text, count=1)
    return _TRAILING_FENCE_RE.sub("", text, count=1).strip()


def content_hash(title: str, body: str) -> str:
    """Hash estável de título + corpo: primeiros 8 bytes do SHA-256 em hex.

    Serve para deduplicação "suave" de insights, não tem força criptográfica.
    """
    digest = hashlib.sha256(f"{title}{body}".encode("utf-8")).digest()
    return digest[:8].hex()


def format_currency(value: float) -> str:
    """Ex: 1000 -> "R$1000.00", -300 -> "R$-300.00"."""
    return f"R${value:.2f}"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Converte o timestamp ISO do Supabase em datetime com fuso (UTC se ausente)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
