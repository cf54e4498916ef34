"""
Biblioteca de validacao de entradas.

Todas as funcoes deste modulo sao totais: nunca levantam excecao e
retornam ``False`` (ou string vazia, no caso das mascaras) para entradas
invalidas ou de tipo inesperado.

Funcoes de Validacao:
    - is_valid_email, is_strong_password, is_valid_name
    - is_valid_cpf, is_valid_cnpj, is_valid_phone_number
    - is_valid_url, is_valid_date, is_minimum_age
    - is_valid_file_type, is_valid_file_size

Funcoes de Formatacao:
    - sanitize_input
    - mask_cpf, mask_cnpj, mask_phone_number
"""

from __future__ import annotations

import os
import re
from datetime import date, datetime
from typing import Any, Iterable


# =============================================================================
# PADROES
# =============================================================================

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*[0-9])(?=.*[@$!%*?&])[A-Za-z0-9@$!%*?&]{8,}$"
)
# Latin-1 letters without the multiplication and division signs.
_NAME_TOKEN = r"[A-Za-zÀ-ÖØ-öø-ÿ]+"
NAME_PATTERN = re.compile(rf"^{_NAME_TOKEN}(?:\s+{_NAME_TOKEN})+$")
PHONE_PATTERN = re.compile(
    r"^(\+?55\s?)?(\(?[1-9]{2}\)?)\s?(9[6-9][0-9]{3}-?[0-9]{4})$"
)
URL_PATTERN = re.compile(r"^(https?://)?([\da-z.-]+)\.([a-z.]{2,6})([/\w .-]*)/?$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_SANITIZE_REPLACEMENTS = (
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&#x27;"),
    ("/", "&#x2F;"),
)


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value)


# =============================================================================
# IDENTIDADE E CONTATO
# =============================================================================

def is_valid_email(value: Any) -> bool:
    """
    Verifica formato de e-mail.

    O dominio precisa conter ao menos um ponto e a parte local nao pode
    comecar com ponto.

    Args:
        value: Texto a validar.

    Returns:
        bool: True se o e-mail tem formato valido.
    """
    if not isinstance(value, str) or not EMAIL_PATTERN.fullmatch(value):
        return False
    local, _, domain = value.partition("@")
    return not local.startswith(".") and "." in domain


def is_strong_password(value: Any) -> bool:
    """
    Verifica a politica de senha forte.

    Exige ao menos 8 caracteres, com letra minuscula, maiuscula, digito e
    um simbolo de ``@$!%*?&``. Qualquer outro caractere invalida a senha.
    """
    return isinstance(value, str) and bool(PASSWORD_PATTERN.fullmatch(value))


def is_valid_name(value: Any) -> bool:
    """Return True for a full name (two or more alphabetic words)."""
    return isinstance(value, str) and bool(NAME_PATTERN.fullmatch(value))


def is_valid_cpf(value: Any) -> bool:
    """
    Valida um CPF pelos digitos verificadores.

    Pontuacao e ignorada; sequencias de digitos repetidos sao rejeitadas.

    Args:
        value: CPF com ou sem mascara.

    Returns:
        bool: True se o CPF e valido.
    """
    if not isinstance(value, str):
        return False
    cpf = _digits(value)
    if len(cpf) != 11 or cpf == cpf[0] * 11:
        return False

    for position in (9, 10):
        soma = sum(
            int(digit) * weight
            for digit, weight in zip(cpf[:position], range(position + 1, 1, -1))
        )
        resto = soma % 11
        digito = 0 if resto < 2 else 11 - resto
        if int(cpf[position]) != digito:
            return False
    return True


def is_valid_cnpj(value: Any) -> bool:
    """Valida um CNPJ pelos digitos verificadores."""
    if not isinstance(value, str):
        return False
    cnpj = _digits(value)
    if len(cnpj) != 14 or cnpj == cnpj[0] * 14:
        return False

    pesos1 = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
    soma1 = sum(int(num) * peso for num, peso in zip(cnpj[:12], pesos1))
    digito1 = 11 - (soma1 % 11)
    digito1 = 0 if digito1 >= 10 else digito1

    pesos2 = [6] + pesos1
    soma2 = sum(int(num) * peso for num, peso in zip(cnpj[:13], pesos2))
    digito2 = 11 - (soma2 % 11)
    digito2 = 0 if digito2 >= 10 else digito2

    return cnpj[-2:] == f"{digito1}{digito2}"


def is_valid_phone_number(value: Any) -> bool:
    """
    Valida numero de celular brasileiro.

    Aceita ``(11) 99999-9999``, ``11999999999`` e ``+55 11 99999-9999``.
    """
    return isinstance(value, str) and bool(PHONE_PATTERN.fullmatch(value))


def is_valid_url(value: Any) -> bool:
    return isinstance(value, str) and bool(URL_PATTERN.fullmatch(value))


# =============================================================================
# DATAS
# =============================================================================

def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def is_valid_date(value: Any) -> bool:
    """
    Verifica se o texto e uma data ``YYYY-MM-DD`` existente no calendario.

    ``"2024-02-30"`` e rejeitado mesmo tendo o formato correto.
    """
    return isinstance(value, str) and _parse_date(value) is not None


def is_minimum_age(birthdate: Any, years: int, today: date | None = None) -> bool:
    """
    Verifica se a pessoa nascida em ``birthdate`` ja completou ``years`` anos.

    Args:
        birthdate: Data de nascimento (``date`` ou texto ``YYYY-MM-DD``).
        years: Idade minima exigida.
        today: Data de referencia; padrao e a data atual.

    Returns:
        bool: True se a idade na data de referencia e >= ``years``.
    """
    born = _parse_date(birthdate)
    if born is None or isinstance(years, bool) or not isinstance(years, int):
        return False
    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age >= years


# =============================================================================
# TEXTO
# =============================================================================

def sanitize_input(value: Any) -> str:
    """
    Escapa caracteres de marcacao apos remover espacos das bordas.

    Args:
        value: Texto digitado pelo usuario.

    Returns:
        str: Texto seguro para exibicao; string vazia para nao-texto.
    """
    if not isinstance(value, str):
        return ""
    sanitized = value.strip()
    for char, entity in _SANITIZE_REPLACEMENTS:
        sanitized = sanitized.replace(char, entity)
    return sanitized


def mask_cpf(value: Any) -> str:
    """Formata CPF como ``000.000.000-00``."""
    if not isinstance(value, str):
        return ""
    cpf = _digits(value)
    if len(cpf) != 11:
        return ""
    return f"{cpf[:3]}.{cpf[3:6]}.{cpf[6:9]}-{cpf[9:]}"


def mask_cnpj(value: Any) -> str:
    """Formata CNPJ como ``00.000.000/0000-00``."""
    if not isinstance(value, str):
        return ""
    cnpj = _digits(value)
    if len(cnpj) != 14:
        return ""
    return f"{cnpj[:2]}.{cnpj[2:5]}.{cnpj[5:8]}/{cnpj[8:12]}-{cnpj[12:]}"


def mask_phone_number(value: Any) -> str:
    """Formata telefone como ``(00) 00000-0000`` ou ``(00) 0000-0000``."""
    if not isinstance(value, str):
        return ""
    phone = _digits(value)
    if len(phone) == 13 and phone.startswith("55"):
        phone = phone[2:]
    if len(phone) == 11:
        return f"({phone[:2]}) {phone[2:7]}-{phone[7:]}"
    if len(phone) == 10:
        return f"({phone[:2]}) {phone[2:6]}-{phone[6:]}"
    return ""


# =============================================================================
# ARQUIVOS
# =============================================================================

def _file_attr(file: Any, *names: str) -> Any:
    for name in names:
        if isinstance(file, dict):
            if file.get(name) is not None:
                return file[name]
        else:
            candidate = getattr(file, name, None)
            if candidate is not None:
                return candidate
    return None


def _file_size(file: Any) -> int | None:
    size = _file_attr(file, "size")
    if isinstance(size, int) and not isinstance(size, bool):
        return size
    stream = _file_attr(file, "stream")
    if stream is None:
        return None
    try:
        position = stream.tell()
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(position)
    except (AttributeError, OSError, ValueError):
        return None
    return size


def is_valid_file_type(file: Any, allowed_types: Iterable[str]) -> bool:
    """
    Verifica se o tipo MIME declarado do arquivo esta na lista permitida.

    Args:
        file: Objeto com ``content_type``/``mimetype``/``type`` (atributo ou chave).
        allowed_types: Tipos MIME aceitos.

    Returns:
        bool: True se o tipo e permitido.
    """
    if file is None:
        return False
    content_type = _file_attr(file, "content_type", "mimetype", "type")
    if not isinstance(content_type, str) or not content_type:
        return False
    try:
        allowed = {str(item).lower() for item in allowed_types}
    except TypeError:
        return False
    return content_type.split(";", 1)[0].strip().lower() in allowed


def is_valid_file_size(file: Any, max_size_mb: float) -> bool:
    """
    Verifica se o arquivo cabe no limite ``max_size_mb`` (megabytes).

    Usa o atributo ``size`` quando presente; do contrario mede o ``stream``
    sem consumi-lo.
    """
    if file is None or isinstance(max_size_mb, bool) or not isinstance(max_size_mb, (int, float)):
        return False
    size = _file_size(file)
    if size is None:
        return False
    return size <= max_size_mb * 1024 * 1024
