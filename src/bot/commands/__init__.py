# src/bot/commands/__init__.py

from .utils import start_command, help_command
from .insights import (
    alertas_command,
    dicas_command,
    insights_command,
    lido_command,
)
