from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Sequence

from passroute.geometry.primitives import LatLng, point_in_polygon
from passroute.network.schemas import RoadFeature


logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_CLASSES = frozenset({"footway", "cycleway", "path", "steps", "pedestrian"})


def _feature_identifier(feature: dict[str, Any]) -> Optional[str]:
    properties = feature.get("properties") or {}
    for value in (properties.get("@id"), properties.get("id"), feature.get("id")):
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _swap_lnglat(coords: Iterable[Any]) -> tuple[LatLng, ...]:
    """Convert GeoJSON `(lng, lat)` pairs to `(lat, lng)`; non-numeric pairs become NaN."""

    out: list[LatLng] = []
    for pair in coords:
        try:
            lng, lat = float(pair[0]), float(pair[1])
        except (TypeError, ValueError, IndexError):
            lat, lng = float("nan"), float("nan")
        out.append((lat, lng))
    return tuple(out)


def features_from_geojson(collection: dict[str, Any]) -> list[RoadFeature]:
    """Parse road polylines out of a GeoJSON FeatureCollection.

    `MultiLineString` geometries yield one feature per part; the parts share properties and
    get `#<part>` appended to their identifier. Other geometry types are ignored.
    """

    features: list[RoadFeature] = []
    skipped = 0
    for raw in collection.get("features") or []:
        if not isinstance(raw, dict):
            skipped += 1
            continue
        geometry = raw.get("geometry") or {}
        properties = dict(raw.get("properties") or {})
        feature_id = _feature_identifier(raw)
        geometry_type = geometry.get("type")
        coordinates = geometry.get("coordinates") or []

        if geometry_type == "LineString":
            features.append(
                RoadFeature(
                    coordinates=_swap_lnglat(coordinates),
                    properties=properties,
                    feature_id=feature_id,
                )
            )
        elif geometry_type == "MultiLineString":
            for part_index, part in enumerate(coordinates):
                part_id = f"{feature_id}#{part_index}" if feature_id is not None else None
                features.append(
                    RoadFeature(
                        coordinates=_swap_lnglat(part),
                        properties=properties,
                        feature_id=part_id,
                    )
                )
        else:
            skipped += 1

    if skipped:
        logger.debug("Ignored %s non-line features in collection.", skipped)
    return features


def polygon_rings_from_geojson(collection: dict[str, Any]) -> list[list[LatLng]]:
    """Return every outer ring of the Polygon/MultiPolygon features, in `(lat, lng)` order."""

    rings: list[list[LatLng]] = []
    for raw in collection.get("features") or []:
        geometry = (raw or {}).get("geometry") or {}
        geometry_type = geometry.get("type")
        coordinates = geometry.get("coordinates") or []
        if geometry_type == "Polygon":
            polygons = [coordinates]
        elif geometry_type == "MultiPolygon":
            polygons = coordinates
        else:
            continue
        for polygon in polygons:
            if polygon:
                rings.append(list(_swap_lnglat(polygon[0])))
    return rings


def filter_vehicular(
    features: Iterable[RoadFeature],
    excluded_classes: Iterable[str] = DEFAULT_EXCLUDED_CLASSES,
) -> list[RoadFeature]:
    """Keep features carrying a road classification that is not a non-vehicular class."""

    excluded = {str(value) for value in excluded_classes}
    kept: list[RoadFeature] = []
    for feature in features:
        classification = feature.classification
        if classification and classification not in excluded:
            kept.append(feature)
    return kept


def clip_to_boundary(
    features: Iterable[RoadFeature],
    rings: Sequence[Sequence[LatLng]],
) -> list[RoadFeature]:
    """Keep features with at least one vertex inside any service-area ring."""

    features = list(features)
    if not rings:
        return features
    kept = [
        feature
        for feature in features
        if any(point_in_polygon(point, ring) for ring in rings for point in feature.coordinates)
    ]
    if len(kept) != len(features):
        logger.info("Dropped %s features outside the service area.", len(features) - len(kept))
    return kept
