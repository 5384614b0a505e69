"""Static PNG preview of composed layers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

from .config import PreviewConfig
from .models import LAYER_PLACES, Color, LayerDescriptor

_BACKGROUND_WHITE = "white"
_BACKGROUND_SATELLITE = "satellite"

# Extent floor so a lone marker still shows its surroundings.
_MIN_SPAN_M = 1_500.0

_LOGGER = logging.getLogger("placelens.preview")


@dataclass(frozen=True, slots=True)
class _MarkerStyle:
    reference_size: float
    nearby_size: float
    edge_color: str


_MARKER_STYLE = _MarkerStyle(reference_size=140.0, nearby_size=60.0, edge_color="#ffffff")


class PreviewRenderer:
    """Draw layer descriptors in Web Mercator, bottom layer first."""

    def __init__(self, cfg: PreviewConfig) -> None:
        self.cfg = cfg
        self._basemap_failure: str | None = None

    @property
    def basemap_warning(self) -> str | None:
        return self._basemap_failure

    def render(self, layers: Sequence[LayerDescriptor], output_path: Path) -> Path:
        plt = _require_matplotlib()
        extent = compute_extent(layers, padding_ratio=self.cfg.padding_ratio)
        if extent is None:
            raise ValueError("Nothing to render: no visible polygons or places")

        dpi = self.cfg.dpi
        fig, ax = plt.subplots(
            figsize=(self.cfg.width_px / dpi, self.cfg.height_px / dpi),
            dpi=dpi,
        )
        fig.subplots_adjust(left=0.0, right=1.0, bottom=0.0, top=1.0)
        try:
            ax.set_xlim(extent[0], extent[2])
            ax.set_ylim(extent[1], extent[3])
            ax.set_aspect("equal", adjustable="datalim")
            ax.axis("off")
            self._draw_basemap(ax)
            for zorder, layer in enumerate(layers, start=1):
                if not layer.visible:
                    continue
                if layer.type == LAYER_PLACES:
                    _draw_places(ax, layer, zorder=zorder)
                else:
                    _draw_polygons(ax, layer, zorder=zorder)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(output_path, dpi=dpi, format=self.cfg.format)
            return output_path
        finally:
            plt.close(fig)

    def _draw_basemap(self, ax: Any) -> None:
        if self.cfg.background == _BACKGROUND_WHITE or self._basemap_failure is not None:
            return
        contextily = _require_contextily()
        providers = _require_xyzservices_providers()
        source = (
            providers.Esri.WorldImagery
            if self.cfg.background == _BACKGROUND_SATELLITE
            else providers.CartoDB.PositronNoLabels
        )
        x0, x1 = ax.get_xlim()
        y0, y1 = ax.get_ylim()
        try:
            image, extent = contextily.bounds2img(
                x0, y0, x1, y1, zoom="auto", source=source, ll=False, max_retries=1
            )
            ax.imshow(image, extent=extent, interpolation="bilinear", zorder=0)
            ax.set_xlim(x0, x1)
            ax.set_ylim(y0, y1)
        except Exception as exc:
            self._basemap_failure = f"Basemap loading failed and was disabled: {exc}"
            _LOGGER.warning(self._basemap_failure)


def compute_extent(
    layers: Sequence[LayerDescriptor],
    *,
    padding_ratio: float = 0.08,
) -> tuple[float, float, float, float] | None:
    """Padded Web Mercator bounds (minx, miny, maxx, maxy) of visible layers."""
    geometry_types = _require_shapely_geometry()
    to_mercator = _require_pyproj_transformer()
    shapes: list[Any] = []
    for layer in layers:
        if not layer.visible:
            continue
        for marker in layer.places:
            x, y = to_mercator.transform(marker.place.longitude, marker.place.latitude)
            shapes.append(geometry_types.Point(x, y))
        for feature in layer.features:
            shapes.append(geometry_types.Polygon(_project_ring(feature.ring)))
    if not shapes:
        return None

    minx, miny, maxx, maxy = geometry_types.GeometryCollection(shapes).bounds
    span = max(maxx - minx, maxy - miny, _MIN_SPAN_M)
    cx = (minx + maxx) / 2.0
    cy = (miny + maxy) / 2.0
    half = span * (0.5 + padding_ratio)
    return (cx - half, cy - half, cx + half, cy + half)


def _project_ring(ring: Sequence[tuple[float, float]]) -> list[tuple[float, float]]:
    to_mercator = _require_pyproj_transformer()
    return [tuple(to_mercator.transform(lon, lat)) for lon, lat in ring]


def _rgb(color: Color) -> tuple[float, float, float]:
    return (color[0] / 255.0, color[1] / 255.0, color[2] / 255.0)


def _draw_polygons(ax: Any, layer: LayerDescriptor, *, zorder: int) -> None:
    for feature in layer.features:
        projected = _project_ring(feature.ring)
        xs = [point[0] for point in projected]
        ys = [point[1] for point in projected]
        ax.fill(
            xs,
            ys,
            facecolor=_rgb(feature.fill_color),
            edgecolor=_rgb(layer.line_color if feature.bucket is None else feature.fill_color),
            alpha=layer.opacity,
            linewidth=1.0,
            zorder=zorder,
        )


def _draw_places(ax: Any, layer: LayerDescriptor, *, zorder: int) -> None:
    to_mercator = _require_pyproj_transformer()
    # Nearby markers first so the reference place stays on top.
    ordered = sorted(layer.places, key=lambda marker: marker.is_reference)
    for marker in ordered:
        x, y = to_mercator.transform(marker.place.longitude, marker.place.latitude)
        ax.scatter(
            [x],
            [y],
            s=_MARKER_STYLE.reference_size if marker.is_reference else _MARKER_STYLE.nearby_size,
            c=[_rgb(layer.line_color if marker.is_reference else layer.fill_color)],
            edgecolors=_MARKER_STYLE.edge_color,
            linewidths=1.0,
            zorder=zorder + (1 if marker.is_reference else 0),
        )


def _require_matplotlib() -> Any:
    try:
        import matplotlib

        matplotlib.use("Agg", force=False)
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for preview rendering") from exc
    return plt


@lru_cache(maxsize=1)
def _require_contextily() -> Any:
    try:
        import contextily as ctx
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("contextily is required for basemap previews") from exc
    return ctx


@lru_cache(maxsize=1)
def _require_xyzservices_providers() -> Any:
    try:
        from xyzservices import providers
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("xyzservices is required for basemap source definitions") from exc
    return providers


@lru_cache(maxsize=1)
def _require_shapely_geometry() -> Any:
    try:
        import shapely.geometry as geometry
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for preview extents") from exc
    return geometry


@lru_cache(maxsize=1)
def _require_pyproj_transformer() -> Any:
    try:
        from pyproj import Transformer
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for Web Mercator projection in previews") from exc
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
