"""
Armazenamento de objetos (arquivos de tarefas, projetos e usuarios).

O restante da aplicacao conversa apenas com o protocolo ``ObjectStorage``.
Handles sao caminhos relativos com namespace (``tasks/<id>/...``,
``projects/<id>/files/...``, ``users/<id>/...``); nao ha deduplicacao,
versionamento nem coleta de lixo.

A implementacao padrao, ``LocalObjectStorage``, grava no diretorio
``STORAGE_ROOT`` e gera URLs sob ``STORAGE_BASE_URL`` servidas pela
rota ``/files`` do blueprint ``health``.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from typing import Protocol
from urllib.parse import quote
from uuid import uuid4

from flask import current_app
from werkzeug.utils import secure_filename

from painel.errors import StorageError

logger = logging.getLogger(__name__)

STORAGE_EXTENSION_KEY = "painel_storage"


class ObjectStorage(Protocol):
    """Contrato minimo de um backend de armazenamento."""

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str: ...

    def get_download_url(self, handle: str) -> str: ...

    def delete(self, handle: str) -> None: ...

    def list(self, prefix: str) -> list[str]: ...

    def read(self, handle: str) -> bytes: ...

    def move(self, source: str, destination: str) -> str: ...


def build_object_path(*parts: str | int, filename: str | None = None, timestamped: bool = True) -> str:
    """
    Monta um caminho de objeto com namespace.

    Args:
        parts: Segmentos do namespace (ex: ``"tasks", 12, "actions", "abc"``).
        filename: Nome original do arquivo; passa por ``secure_filename``.
        timestamped: Prefixa o nome com ``<epoch_ms>_`` para evitar colisoes.

    Returns:
        str: Caminho relativo, sempre com ``/``.
    """
    segments = [str(part).strip("/") for part in parts if str(part).strip("/")]
    if filename is not None:
        safe_name = secure_filename(filename) or uuid4().hex
        if timestamped:
            safe_name = f"{int(time.time() * 1000)}_{uuid4().hex[:8]}_{safe_name}"
        segments.append(safe_name)
    return "/".join(segments)


class LocalObjectStorage:
    """Backend de armazenamento em disco local."""

    def __init__(self, root: str, base_url: str = "/files"):
        self.root = os.path.abspath(root)
        self.base_url = base_url.rstrip("/")

    def _resolve(self, handle: str) -> str:
        relative = (handle or "").replace("\\", "/").lstrip("/")
        full_path = os.path.abspath(os.path.join(self.root, relative))
        if not relative or os.path.commonpath([self.root, full_path]) != self.root:
            raise StorageError(f"Caminho de armazenamento inválido: {handle}")
        return full_path

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        full_path = self._resolve(path)
        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            with open(full_path, "wb") as handle:
                handle.write(data)
        except OSError as exc:
            raise StorageError(f"Falha ao gravar {path}: {exc}") from exc
        logger.debug("Stored %s (%s bytes, %s)", path, len(data), content_type)
        return path

    def get_download_url(self, handle: str) -> str:
        self._resolve(handle)
        return f"{self.base_url}/{quote(handle.lstrip('/'))}"

    def delete(self, handle: str) -> None:
        full_path = self._resolve(handle)
        try:
            os.remove(full_path)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(f"Falha ao remover {handle}: {exc}") from exc

    def list(self, prefix: str) -> list[str]:
        base = self._resolve(prefix)
        if not os.path.isdir(base):
            return []
        handles = []
        for directory, _dirs, files in os.walk(base):
            for name in files:
                full_path = os.path.join(directory, name)
                handles.append(os.path.relpath(full_path, self.root).replace(os.sep, "/"))
        return sorted(handles)

    def read(self, handle: str) -> bytes:
        full_path = self._resolve(handle)
        try:
            with open(full_path, "rb") as stored:
                return stored.read()
        except FileNotFoundError as exc:
            raise StorageError(f"Arquivo não encontrado: {handle}") from exc
        except OSError as exc:
            raise StorageError(f"Falha ao ler {handle}: {exc}") from exc

    def move(self, source: str, destination: str) -> str:
        source_path = self._resolve(source)
        destination_path = self._resolve(destination)
        try:
            os.makedirs(os.path.dirname(destination_path), exist_ok=True)
            shutil.move(source_path, destination_path)
        except OSError as exc:
            raise StorageError(f"Falha ao mover {source} para {destination}: {exc}") from exc
        return destination

    def local_path(self, handle: str) -> str:
        return self._resolve(handle)


def get_storage(app=None) -> ObjectStorage:
    """
    Retorna o backend configurado para a aplicacao.

    O backend fica em ``app.extensions`` e pode ser substituido (ex: testes)
    com ``set_storage``.
    """
    app = app or current_app._get_current_object()
    storage = app.extensions.get(STORAGE_EXTENSION_KEY)
    if storage is None:
        storage = LocalObjectStorage(
            app.config["STORAGE_ROOT"],
            app.config.get("STORAGE_BASE_URL", "/files"),
        )
        app.extensions[STORAGE_EXTENSION_KEY] = storage
    return storage


def set_storage(app, storage: ObjectStorage) -> None:
    app.extensions[STORAGE_EXTENSION_KEY] = storage
