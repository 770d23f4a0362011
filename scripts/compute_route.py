from __future__ import annotations

import argparse
import json
from pathlib import Path

from passroute.api.state import NetworkState
from passroute.logging_config import configure_logging
from passroute.network.schemas import VehicleMode
from passroute.routing.planner import LookupFailure, NoRoute, Route
from passroute.settings import get_config


def _latlng(text: str) -> tuple[float, float]:
    try:
        lat_text, lng_text = text.split(",")
        return float(lat_text), float(lng_text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected 'lat,lng', got {text!r}") from exc


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compute one route over the current road network.")
    parser.add_argument("--start", type=_latlng, required=True, help="Start point as 'lat,lng'.")
    parser.add_argument("--end", type=_latlng, required=True, help="End point as 'lat,lng'.")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in VehicleMode],
        default=VehicleMode.STANDARD.value,
        help="Vehicle mode selecting the restricted-road cost table.",
    )
    parser.add_argument("--roads", default=None, help="Override road GeoJSON (default: config paths.roads_geojson).")
    parser.add_argument(
        "--statuses",
        default=None,
        help="Override prior statuses CSV (default: config paths.prior_statuses_csv).",
    )
    parser.add_argument("--snap", action="store_true", help="Snap endpoints onto the nearest open road first.")
    parser.add_argument("--out", default=None, help="Write the route as GeoJSON to this path.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    configure_logging()

    config = get_config()
    overrides = {}
    if args.roads:
        overrides["roads_geojson"] = Path(args.roads).resolve()
    if args.statuses:
        overrides["prior_statuses_csv"] = Path(args.statuses).resolve()
    if overrides:
        config = config.model_copy(update={"paths": config.paths.model_copy(update=overrides)})

    state = NetworkState.from_config(config)
    result = state.route(args.start, args.end, VehicleMode(args.mode), snap=args.snap)

    if isinstance(result, LookupFailure):
        print(f"[route] lookup failure ({result.endpoint}): {result.reason}")
        raise SystemExit(2)
    if isinstance(result, NoRoute):
        print("[route] no route: no open road connects the two points")
        raise SystemExit(1)
    assert isinstance(result, Route)

    print(
        f"[route] {len(result.path)} points, {result.distance_m:,.0f} m, "
        f"ETA {result.eta_minutes:.1f} min ({args.mode} mode)"
    )
    if args.out:
        feature = {
            "type": "Feature",
            "properties": {
                "distance_m": result.distance_m,
                "eta_minutes": result.eta_minutes,
                "vehicle_mode": args.mode,
            },
            "geometry": {"type": "LineString", "coordinates": [[lng, lat] for lat, lng in result.path]},
        }
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(feature, indent=2), encoding="utf-8")
        print(f"[route] wrote {out}")


if __name__ == "__main__":
    main()
