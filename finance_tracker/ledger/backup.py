"""
Backup Export / Import

A backup is a single JSON document:

    {"transactions": [...], "goals": [...], "exportedAt": "...", "version": 1}

Import replaces each collection wholesale when its key is present and
holds a list; a document with only one of the keys replaces only that
collection.

CRITICAL: Import is all-or-nothing. The document is fully parsed and
validated before the store is touched, so a bad file leaves the
current state unchanged.
"""

import json
from datetime import datetime
from typing import Optional, Union

import structlog
from pydantic import ValidationError

from finance_tracker.ledger.store import LedgerStore
from finance_tracker.models.ledger import BackupDocument, Goal, Transaction


logger = structlog.get_logger(__name__)

BACKUP_VERSION = 1


class BackupImportError(Exception):
    """The backup file could not be read. The message is shown to the user."""
    pass


def export_backup(
    transactions: list[Transaction],
    goals: list[Goal],
    exported_at: Optional[datetime] = None,
    version: int = BACKUP_VERSION,
) -> dict:
    """JSON-ready backup document of both collections."""
    document = BackupDocument(
        transactions=transactions,
        goals=goals,
        exported_at=exported_at or datetime.utcnow(),
        version=version,
    )
    return document.to_storage_dict()


def dumps_backup(document: dict) -> str:
    """Serialize a backup document for download."""
    return json.dumps(document, ensure_ascii=False, indent=2)


def backup_filename(exported_at: Optional[datetime] = None) -> str:
    exported_at = exported_at or datetime.utcnow()
    return f"backup_financeiro_{exported_at.strftime('%Y-%m-%d')}.json"


def _format_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}"


def parse_backup(raw: Union[str, bytes, dict]) -> BackupDocument:
    """
    Parse and validate a backup document.

    Keys that are missing, or present but not a list, come back as None
    and leave the matching collection alone on import.

    Raises:
        BackupImportError: If the input is not JSON, not an object, or
            holds a record that does not validate
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise BackupImportError(f"O arquivo não é um JSON válido: {e}")
    else:
        data = raw

    if not isinstance(data, dict):
        raise BackupImportError("O arquivo de backup deve conter um objeto JSON.")

    payload = {
        key: data[key]
        for key in ("transactions", "goals")
        if isinstance(data.get(key), list)
    }
    if not payload:
        raise BackupImportError(
            "O arquivo não contém listas de transações ou metas."
        )

    if "version" in data:
        payload["version"] = data["version"]
    if data.get("exportedAt"):
        payload["exportedAt"] = data["exportedAt"]

    try:
        return BackupDocument.model_validate(payload)
    except ValidationError as e:
        raise BackupImportError(
            f"Registro inválido no backup ({_format_validation_error(e)})"
        )


def apply_backup(store: LedgerStore, document: BackupDocument) -> list[str]:
    """
    Replace store collections from a parsed backup.

    Returns:
        Names of the collections that were replaced
    """
    replaced = []
    if document.transactions is not None:
        store.replace_transactions(document.transactions)
        replaced.append("transactions")
    if document.goals is not None:
        store.replace_goals(document.goals)
        replaced.append("goals")

    logger.info(
        "backup_applied",
        replaced=replaced,
        transaction_count=len(document.transactions or []),
        goal_count=len(document.goals or []),
    )
    return replaced


def import_backup(store: LedgerStore, raw: Union[str, bytes, dict]) -> list[str]:
    """Parse a backup and apply it. Nothing changes if parsing fails."""
    return apply_backup(store, parse_backup(raw))
