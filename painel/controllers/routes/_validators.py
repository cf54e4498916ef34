"""
Validadores de upload.

Completam a checagem de tipo declarado (``painel.utils.validation``)
conferindo a assinatura real do arquivo (magic bytes).

Funcoes de Validacao de Upload:
    - signature_matches: assinatura confere com o MIME declarado
    - ensure_safe_uploads: aplica a checagem a um lote de arquivos
    - ensure_safe_image: checagem completa de imagem de perfil
"""

import filetype

from painel.constants import PROFILE_IMAGE_MIME_TYPES
from painel.controllers.routes._base import peek_bytes
from painel.errors import ValidationFailure
from painel.workflow.completion import PendingFile

# Tipos sem assinatura binaria confiavel (texto puro, csv, json...)
_UNSNIFFABLE_PREFIXES = ("text/", "application/json", "application/octet-stream")


# =============================================================================
# VALIDACAO DE ASSINATURA
# =============================================================================

def signature_matches(pending: PendingFile) -> bool:
    """
    Verifica se a assinatura do arquivo corresponde ao tipo declarado.

    Tipos textuais ou genericos nao sao conferidos. Para os demais, o
    arquivo precisa ter assinatura reconhecida e da mesma familia do tipo
    declarado (ex: ``image/jpeg`` declarado como ``image/png`` passa; um
    executavel declarado como ``image/png`` nao).

    Args:
        pending: Arquivo recebido.

    Returns:
        bool: True se o arquivo pode ser aceito.
    """
    declared = (pending.content_type or "").split(";", 1)[0].strip().lower()
    if not declared or declared.startswith(_UNSNIFFABLE_PREFIXES):
        return True

    guess = filetype.guess(peek_bytes(pending))
    if guess is None:
        # Formatos de escritorio antigos e afins nao sao reconhecidos
        return not declared.startswith(("image/", "video/", "audio/", "application/pdf"))
    if declared == guess.mime:
        return True
    return declared.split("/", 1)[0] == guess.mime.split("/", 1)[0] != "application"


def ensure_safe_uploads(pending_files) -> None:
    """
    Raises:
        ValidationFailure: algum arquivo com assinatura incompativel.
    """
    for pending in pending_files:
        if not signature_matches(pending):
            raise ValidationFailure(
                f"O conteúdo de {pending.name} não corresponde ao tipo {pending.content_type}.",
                field="files",
            )


def ensure_safe_image(pending: PendingFile) -> None:
    """
    Valida imagem de perfil: tipo declarado permitido e assinatura de imagem.

    Raises:
        ValidationFailure: arquivo nao e uma imagem aceita.
    """
    guess = filetype.guess(peek_bytes(pending))
    if guess is None or guess.mime not in PROFILE_IMAGE_MIME_TYPES:
        raise ValidationFailure("Envie uma imagem PNG, JPG, GIF ou WEBP.", field="profile_image")
