"""JSON export of result models.

Why JSON:
- Interoperability with spreadsheets/BI pipelines (billing, usage).
- Persists a run's outcome without depending on the HTML/PDF render.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel


def export_model_json(*, model: BaseModel, output_path: Path) -> Path:
    """Export any result model as UTF-8 JSON with a stable layout."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = model.model_dump(mode="json")
    output_path.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return output_path
