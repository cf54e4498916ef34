"""
Utilitarios centralizados para manipulacao de datas e horas.

Padroes da aplicacao:
    - Colunas ``DateTime`` guardam UTC sem timezone (naive)
    - Timestamps dentro do JSON das acoes sao ISO 8601 com offset UTC
    - Exibicao: sempre em horario de Sao Paulo, formato ``DD/MM/YYYY HH:MM``
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

# Timezone principal da aplicacao
SAO_PAULO_TZ = ZoneInfo("America/Sao_Paulo")


def utcnow() -> datetime:
    """
    Retorna datetime atual em UTC, sem timezone (naive).

    Usado como ``default``/``onupdate`` das colunas de data.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utcnow_aware() -> datetime:
    """Retorna datetime atual em UTC, com tzinfo."""
    return datetime.now(timezone.utc)


def to_sao_paulo(dt: datetime | None) -> datetime | None:
    """
    Converte datetime para timezone de Sao Paulo.

    Aceita tanto datetimes aware quanto naive. Para naive,
    assume que ja esta em UTC.

    Args:
        dt: Datetime a ser convertido.

    Returns:
        datetime | None: Datetime em Sao Paulo timezone, ou None.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(SAO_PAULO_TZ)


def format_datetime_br(dt: datetime | None, include_time: bool = True) -> str:
    """
    Formata datetime para exibicao no padrao brasileiro.

    Args:
        dt: Datetime a ser formatado (naive = UTC).
        include_time: Se True, inclui hora no formato.

    Returns:
        str: Data formatada como "DD/MM/YYYY HH:MM" ou "DD/MM/YYYY".
    """
    local = to_sao_paulo(dt)
    if local is None:
        return "—"
    if include_time:
        return local.strftime("%d/%m/%Y %H:%M")
    return local.strftime("%d/%m/%Y")
