"""JSON document helpers shared by the processors."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds').replace('+00:00', 'Z')


def load_json(path: Path, fallback: Any = None) -> Any:
    """Load a JSON file; a missing file yields the fallback. Malformed JSON raises ValueError."""
    if not path.exists():
        return fallback
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(path: Path, obj: Any) -> None:
    """Write JSON (UTF-8, non-ASCII kept) creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    with open(tmp, 'w', encoding='utf-8') as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)
        f.write('\n')
    tmp.replace(path)


def items_document(items: List[Any], **extra) -> Dict[str, Any]:
    """The {updatedAt, total, items} envelope used by every list file."""
    doc: Dict[str, Any] = {'updatedAt': now_iso(), 'total': len(items)}
    doc.update(extra)
    doc['items'] = items
    return doc


def document_items(doc: Any) -> List[Any]:
    """Items of an envelope document (or a bare list); anything else yields []."""
    if isinstance(doc, list):
        return doc
    if isinstance(doc, dict) and isinstance(doc.get('items'), list):
        return doc['items']
    return []
