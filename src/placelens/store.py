"""Read-only client for the hosted PostgREST data store."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import requests

from .config import StoreConfig
from .models import HomeZipcodeArea, Place, TradeAreaRecord
from .records import (
    join_home_zipcodes,
    parse_locations,
    parse_places,
    parse_trade_areas,
    parse_zipcode_polygons,
)

_ZIPCODE_BATCH_SIZE = 200

_LOGGER = logging.getLogger("placelens.store")


class StoreError(RuntimeError):
    """Raised when the data store cannot be queried."""


class RestStore:
    """Query `places`, `trade_areas`, `home_zipcodes` and `zipcodes` tables."""

    def __init__(self, cfg: StoreConfig, *, session: requests.Session | None = None) -> None:
        if not cfg.url:
            raise StoreError("store.url is not configured")
        self.cfg = cfg
        self._base_url = f"{cfg.url}/rest/v1"
        self._session = session or requests.Session()
        self._trade_areas: dict[str, list[TradeAreaRecord] | None] = {}
        self._home_zipcodes: dict[str, list[HomeZipcodeArea] | None] = {}
        self._session.headers.update({"User-Agent": cfg.user_agent, "Accept": "application/json"})
        api_key = cfg.api_key
        if api_key:
            self._session.headers.update({"apikey": api_key, "Authorization": f"Bearer {api_key}"})
        else:
            _LOGGER.warning("No store API key found in $%s", cfg.api_key_env)

    def load_places(self) -> list[Place]:
        rows = self._select("places", {"select": "*", "order": "name"})
        places = parse_places(rows)
        _LOGGER.info("Loaded %d places from store", len(places))
        return places

    def trade_areas_for(self, place_id: str) -> list[TradeAreaRecord] | None:
        if place_id in self._trade_areas:
            return self._trade_areas[place_id]
        rows = self._select("trade_areas", {"select": "*", "pid": f"eq.{place_id}"})
        records = parse_trade_areas(rows)
        _LOGGER.info("Found %d trade area records for place %s", len(records), place_id)
        self._trade_areas[place_id] = records or None
        return self._trade_areas[place_id]

    def home_zipcode_weights_for(self, place_id: str) -> dict[str, float] | None:
        rows = self._select("home_zipcodes", {"select": "*", "place_id": f"eq.{place_id}"})
        if not rows:
            _LOGGER.info("No home zipcode data found for place %s", place_id)
            return None
        return parse_locations(rows[0].get("locations")) or None

    def zipcode_polygons(self, zipcode_ids: Sequence[str]) -> dict[str, Any]:
        polygons: dict[str, Any] = {}
        for start in range(0, len(zipcode_ids), _ZIPCODE_BATCH_SIZE):
            batch = zipcode_ids[start : start + _ZIPCODE_BATCH_SIZE]
            id_list = ",".join(f'"{item}"' for item in batch)
            rows = self._select("zipcodes", {"select": "id,polygon", "id": f"in.({id_list})"})
            polygons.update(parse_zipcode_polygons(rows))
        return polygons

    def home_zipcodes_for(self, place_id: str) -> list[HomeZipcodeArea] | None:
        if place_id in self._home_zipcodes:
            return self._home_zipcodes[place_id]
        weights = self.home_zipcode_weights_for(place_id)
        areas = None
        if weights:
            polygons = self.zipcode_polygons(list(weights))
            areas = join_home_zipcodes(weights, polygons) or None
        self._home_zipcodes[place_id] = areas
        return areas

    def _select(self, table: str, params: Mapping[str, str]) -> list[Mapping[str, Any]]:
        url = f"{self._base_url}/{table}"
        try:
            response = self._session.get(url, params=params, timeout=self.cfg.request_timeout_s)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise StoreError(f"Query on '{table}' failed: {exc}") from exc
        except ValueError as exc:
            raise StoreError(f"Query on '{table}' returned invalid JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise StoreError(f"Query on '{table}' returned {type(payload).__name__}, expected list")
        return [row for row in payload if isinstance(row, Mapping)]
