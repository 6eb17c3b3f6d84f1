"""
JSON crawl report.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any


def write_report(
    path: str | Path,
    session: dict[str, Any],
    documents: list[dict[str, Any]],
    errors: list[dict[str, Any]],
) -> Path:
    """
    Write a crawl report as indented JSON.

    Args:
        path: Destination file; parent directories are created.
        session: Session status snapshot.
        documents: Serialized discovered documents.
        errors: Serialized per-URL errors.

    Returns:
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    report = {
        "session": session,
        "documents": documents,
        "errors": errors,
        "summary": {
            "documents_found": len(documents),
            "documents_downloaded": sum(1 for d in documents if d.get("downloaded")),
            "errors": len(errors),
        },
        "generated_at": datetime.utcnow().isoformat(),
    }

    with path.open("w", encoding="utf-8") as fh:
        json.dump(report, fh, indent=2, default=str)

    return path
