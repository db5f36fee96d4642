import os
import re
import secrets
from flask import current_app, send_from_directory, url_for
from werkzeug.security import safe_join

_UNSAFE = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(name: str) -> str:
    return _UNSAFE.sub("_", name or "arquivo")


def storage_root() -> str:
    return current_app.config["UPLOAD_FOLDER"]


def blob_abspath(file_path: str) -> str:
    path = safe_join(storage_root(), file_path)
    if path is None:
        raise ValueError(f"Caminho inválido: {file_path}")
    return path


def save_blob(file_storage, owner_id) -> dict:
    """
    Salva o arquivo em {owner_id}/{token}_{nome_sanitizado}.
    Retorna os metadados para gravar no banco.
    """
    original = file_storage.filename or "arquivo"
    stored = f"{secrets.token_hex(8)}_{sanitize_filename(original)}"
    file_path = f"{owner_id}/{stored}"

    path = blob_abspath(file_path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    file_storage.save(path)

    return {
        "file_name": original,
        "file_path": file_path,
        "file_type": file_storage.mimetype or None,
        "file_size": os.path.getsize(path),
    }


def delete_blob(file_path: str) -> bool:
    path = blob_abspath(file_path)
    if os.path.exists(path):
        os.remove(path)
        return True
    return False


def send_blob(file_path: str, download_name: str | None = None):
    return send_from_directory(
        storage_root(), file_path, as_attachment=bool(download_name), download_name=download_name
    )


def public_url(file_path: str) -> str:
    return url_for("notes.file", file_path=file_path, _external=True)
