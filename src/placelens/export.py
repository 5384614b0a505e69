"""Export of the current analysis state and composed layers."""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from .controller import MapController
from .models import LayerDescriptor
from .util import write_json

EXPORT_FORMATS = ("json", "csv")
CSV_HEADER = ("Type", "Place Name", "Place ID", "Data Count", "Visible")


def session_summary(controller: MapController, *, now: datetime | None = None) -> dict[str, Any]:
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    filters = controller.filters
    return {
        "timestamp": stamp,
        "my_place": controller.reference_place.to_dict() if controller.reference_place else None,
        "filters": {
            "radius_m": filters.radius_m,
            "categories": sorted(filters.categories),
            "show_nearby_places": filters.show_nearby_places,
        },
        "selection": {
            "data_type": controller.selection.selected_data_type,
            "show_trade_areas": controller.selection.show_trade_areas,
            "show_home_zipcodes": controller.selection.show_home_zipcodes,
        },
        "active_layers": [
            {
                "id": entry.id,
                "type": entry.type,
                "place_id": entry.place_id,
                "place_name": entry.place_name,
                "visible": entry.visible,
                "color": list(entry.color) if entry.color else None,
                "data_count": len(entry.data),
            }
            for entry in controller.registry.snapshot()
        ],
    }


def registry_csv(controller: MapController) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for entry in controller.registry.snapshot():
        writer.writerow(
            (
                entry.type,
                entry.place_name or "Unknown",
                entry.place_id,
                len(entry.data),
                "Yes" if entry.visible else "No",
            )
        )
    return buffer.getvalue()


def write_export(controller: MapController, output_path: Path, *, fmt: str = "json") -> Path:
    chosen = fmt.strip().casefold()
    if chosen not in EXPORT_FORMATS:
        raise ValueError(f"Export format must be one of: {', '.join(EXPORT_FORMATS)}")
    if chosen == "json":
        write_json(output_path, session_summary(controller))
    else:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(registry_csv(controller), encoding="utf-8")
    return output_path


def write_layers(layers: Sequence[LayerDescriptor], output_path: Path) -> Path:
    write_json(output_path, {"layers": [layer.to_dict() for layer in layers]})
    return output_path
