from __future__ import annotations

import datetime as dt
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from .ranges import RangeEntry, upsert_range_entry
from .scoring import calculate_score
from .session import SessionFilters, SessionRecord
from .shots import ShotSequence


logger = logging.getLogger(__name__)

SESSION_FIELDS = (
    "id,user_id,name,date,rifle,calibre,bullet_weight,distance,elevation,windage,"
    "shots,total_score,v_count,photo_url,notes,created_at"
)
DOPE_CARD_FIELDS = "id,user_id,name,rifle,calibre,created_at"
DOPE_RANGE_FIELDS = "id,dope_card_id,range,elevation,windage,created_at"

Params = List[Tuple[str, Any]]


class DataStore:
    """Persists sessions and DOPE cards in Supabase, or local JSON files as a fallback."""

    def __init__(self, data_dir: Path | None = None) -> None:
        """Initialize the DataStore.

        Args:
            data_dir: Directory holding the local JSON files used when Supabase
                is not configured or cannot be reached.
        """
        self.data_dir = data_dir or (Path(__file__).parent.parent / "data")

        # Supabase configuration
        self.supabase_url = os.getenv("SUPABASE_URL", "")
        self.supabase_key = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY")
            or os.getenv("SUPABASE_SERVICE_KEY")
            or os.getenv("SUPABASE_ANON_KEY")
            or ""
        )
        self.supabase_schema = os.getenv("SUPABASE_SCHEMA", "public")
        self.supabase_sessions_table = os.getenv("SUPABASE_SESSIONS_TABLE", "sessions")
        self.supabase_dope_cards_table = os.getenv("SUPABASE_DOPE_CARDS_TABLE", "dope_cards")
        self.supabase_dope_ranges_table = os.getenv("SUPABASE_DOPE_RANGES_TABLE", "dope_ranges")
        self.local_sessions_path = self.data_dir / "sessions_local.json"
        self.local_dope_cards_path = self.data_dir / "dope_cards_local.json"
        self.local_dope_ranges_path = self.data_dir / "dope_ranges_local.json"

    # ------------------------------------------------------------------
    # Sessions

    def fetch_session_records(
        self, user_id: str, filters: SessionFilters | None = None
    ) -> List[SessionRecord]:
        """Sessions owned by ``user_id``, newest first."""
        filters = filters or SessionFilters()
        if not self._remote_enabled(self.supabase_sessions_table):
            return self._load_local_sessions(user_id, filters)

        params: Params = [
            ("select", SESSION_FIELDS),
            ("user_id", f"eq.{user_id}"),
            ("order", "created_at.desc"),
        ]
        params.extend(self._session_filter_params(filters))

        try:
            rows = self._remote_call("get", self.supabase_sessions_table, params)
        except httpx.HTTPError as exc:
            logger.warning("Supabase fetch_sessions failed (%s); using local fallback", exc)
            return self._load_local_sessions(user_id, filters)

        return self._records_from_rows(rows)

    def fetch_sessions(self, user_id: str, filters: SessionFilters | None = None) -> List[Dict[str, Any]]:
        return [self._normalise_session(record) for record in self.fetch_session_records(user_id, filters)]

    def fetch_session(self, user_id: str, session_id: str) -> Dict[str, Any]:
        return self._normalise_session(self._fetch_session_record(user_id, session_id))

    def create_session(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        record = self._session_record_from_payload(payload)
        row = self._session_db_row(record, user_id)

        if not self._remote_enabled(self.supabase_sessions_table):
            return self._normalise_session(self._insert_local(self.local_sessions_path, row, SessionRecord.from_row))

        try:
            rows = self._remote_call(
                "post",
                self.supabase_sessions_table,
                [("select", SESSION_FIELDS)],
                json=row,
                prefer="return=representation",
            )
        except httpx.HTTPError as exc:
            self._raise_for_rejection(exc, "create_session")
            return self._normalise_session(self._insert_local(self.local_sessions_path, row, SessionRecord.from_row))

        created = self._first_row(rows)
        if created is None:
            raise RuntimeError("Unexpected response when creating session")
        return self._normalise_session(SessionRecord.from_row(created))

    def update_session(self, user_id: str, session_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        existing = self._fetch_session_record(user_id, session_id)
        changes = self._session_changes(payload)
        if changes is None:
            return self._normalise_session(existing)

        if not self._remote_enabled(self.supabase_sessions_table):
            return self._normalise_session(self._update_local_session(user_id, session_id, changes))

        params: Params = [
            ("id", f"eq.{session_id}"),
            ("user_id", f"eq.{user_id}"),
            ("select", SESSION_FIELDS),
        ]
        try:
            rows = self._remote_call(
                "patch", self.supabase_sessions_table, params, json=changes, prefer="return=representation"
            )
        except httpx.HTTPError as exc:
            self._raise_for_rejection(exc, "update_session")
            return self._normalise_session(self._update_local_session(user_id, session_id, changes))

        updated = self._first_row(rows)
        if updated is None:
            raise ValueError("Session not found")
        return self._normalise_session(SessionRecord.from_row(updated))

    def delete_session(self, user_id: str, session_id: str) -> None:
        if not self._remote_enabled(self.supabase_sessions_table):
            self._delete_local_session(user_id, session_id)
            return

        params: Params = [("id", f"eq.{session_id}"), ("user_id", f"eq.{user_id}")]
        try:
            rows = self._remote_call("delete", self.supabase_sessions_table, params, prefer="return=representation")
        except httpx.HTTPError as exc:
            self._raise_for_rejection(exc, "delete_session")
            self._delete_local_session(user_id, session_id)
            return

        if not rows:
            raise ValueError("Session not found")

    def _fetch_session_record(self, user_id: str, session_id: str) -> SessionRecord:
        if not self._remote_enabled(self.supabase_sessions_table):
            return self._local_session(user_id, session_id)

        params: Params = [
            ("select", SESSION_FIELDS),
            ("id", f"eq.{session_id}"),
            ("user_id", f"eq.{user_id}"),
            ("limit", 1),
        ]
        try:
            rows = self._remote_call("get", self.supabase_sessions_table, params)
        except httpx.HTTPError as exc:
            logger.warning("Supabase fetch_session failed (%s); using local fallback", exc)
            return self._local_session(user_id, session_id)

        row = self._first_row(rows)
        if row is None:
            raise ValueError("Session not found")
        return SessionRecord.from_row(row)

    @staticmethod
    def _session_filter_params(filters: SessionFilters) -> Params:
        params: Params = []
        if filters.name:
            params.append(("name", f"ilike.*{filters.name}*"))
        if filters.rifle:
            params.append(("rifle", f"ilike.*{filters.rifle}*"))
        if filters.distance:
            params.append(("distance", f"eq.{filters.distance}"))
        if filters.date_from:
            params.append(("date", f"gte.{filters.date_from}"))
        if filters.date_to:
            params.append(("date", f"lte.{filters.date_to}"))
        return params

    @staticmethod
    def _records_from_rows(rows: Any) -> List[SessionRecord]:
        if not isinstance(rows, list):
            return []
        records: List[SessionRecord] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            try:
                records.append(SessionRecord.from_row(row))
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping malformed session row %s: %s", row.get("id"), exc)
        return records

    def _session_record_from_payload(self, payload: Dict[str, Any]) -> SessionRecord:
        shots = ShotSequence.from_raw(payload.get("shots") or [])
        score = calculate_score(shots)
        return SessionRecord(
            name=self._require_text(payload, "name", "Session"),
            date=self._coerce_date(payload.get("date")),
            rifle=self._require_text(payload, "rifle", "Session"),
            calibre=self._require_text(payload, "calibre", "Session"),
            bullet_weight=self._require_int(payload, "bulletWeight", "Bullet weight"),
            distance=self._require_int(payload, "distance", "Distance"),
            elevation=self._coerce_float(payload.get("elevation")),
            windage=self._coerce_float(payload.get("windage")),
            shots=shots,
            total_score=score.total_score,
            v_count=score.v_count,
            notes=self._coerce_text(payload.get("notes")),
            photo_url=self._coerce_text(payload.get("photoUrl")),
        )

    def _session_changes(self, payload: Dict[str, Any]) -> Dict[str, Any] | None:
        """Column updates for a partial session payload, or ``None`` when nothing changes."""
        changes: Dict[str, Any] = {}

        for key in ("name", "rifle", "calibre"):
            if key in payload:
                changes[key] = self._require_text(payload, key, "Session")
        if "date" in payload:
            changes["date"] = self._coerce_date(payload.get("date"))
        if "bulletWeight" in payload:
            changes["bullet_weight"] = self._require_int(payload, "bulletWeight", "Bullet weight")
        if "distance" in payload:
            changes["distance"] = self._require_int(payload, "distance", "Distance")

        # Explicit nulls clear these columns.
        if "elevation" in payload:
            changes["elevation"] = self._coerce_float(payload.get("elevation"))
        if "windage" in payload:
            changes["windage"] = self._coerce_float(payload.get("windage"))
        if "notes" in payload:
            changes["notes"] = self._coerce_text(payload.get("notes"))
        if "photoUrl" in payload:
            changes["photo_url"] = self._coerce_text(payload.get("photoUrl"))

        if "shots" in payload:
            shots = ShotSequence.from_raw(payload.get("shots") or [])
            score = calculate_score(shots)
            changes["shots"] = shots.to_raw()
            changes["total_score"] = score.total_score
            changes["v_count"] = score.v_count

        if not changes:
            return None
        return changes

    @staticmethod
    def _session_db_row(record: SessionRecord, user_id: str) -> Dict[str, Any]:
        score = record.score
        return {
            "user_id": user_id,
            "name": record.name,
            "date": record.date,
            "rifle": record.rifle,
            "calibre": record.calibre,
            "bullet_weight": record.bullet_weight,
            "distance": record.distance,
            "elevation": record.elevation,
            "windage": record.windage,
            "shots": record.shots.to_raw(),
            "total_score": score.total_score,
            "v_count": score.v_count,
            "photo_url": record.photo_url,
            "notes": record.notes,
        }

    @staticmethod
    def _normalise_session(record: SessionRecord) -> Dict[str, Any]:
        score = record.score
        return {
            "id": record.id or "",
            "name": record.name,
            "date": record.date,
            "rifle": record.rifle,
            "calibre": record.calibre,
            "bulletWeight": record.bullet_weight,
            "distance": record.distance,
            "elevation": record.elevation,
            "windage": record.windage,
            "shots": record.shots.to_raw(),
            "totalScore": score.total_score,
            "vCount": score.v_count,
            "notes": record.notes,
            "photoUrl": record.photo_url,
            "createdAt": record.created_at,
        }

    # ------------------------------------------------------------------
    # DOPE cards

    def fetch_dope_cards(self, user_id: str) -> List[Dict[str, Any]]:
        if not self._remote_enabled(self.supabase_dope_cards_table):
            return self._load_local_dope_cards(user_id)

        params: Params = [
            ("select", DOPE_CARD_FIELDS),
            ("user_id", f"eq.{user_id}"),
            ("order", "created_at.asc"),
        ]
        try:
            rows = self._remote_call("get", self.supabase_dope_cards_table, params)
        except httpx.HTTPError as exc:
            logger.warning("Supabase fetch_dope_cards failed (%s); using local fallback", exc)
            return self._load_local_dope_cards(user_id)

        if not isinstance(rows, list):
            return []
        return [self._normalise_dope_card_row(row) for row in rows if isinstance(row, dict)]

    def fetch_dope_card(self, user_id: str, card_id: str) -> Dict[str, Any]:
        if not self._remote_enabled(self.supabase_dope_cards_table):
            return self._local_dope_card(user_id, card_id)

        params: Params = [
            ("select", DOPE_CARD_FIELDS),
            ("id", f"eq.{card_id}"),
            ("user_id", f"eq.{user_id}"),
            ("limit", 1),
        ]
        try:
            rows = self._remote_call("get", self.supabase_dope_cards_table, params)
        except httpx.HTTPError as exc:
            logger.warning("Supabase fetch_dope_card failed (%s); using local fallback", exc)
            return self._local_dope_card(user_id, card_id)

        row = self._first_row(rows)
        if row is None:
            raise ValueError("DOPE card not found")
        return self._normalise_dope_card_row(row)

    def create_dope_card(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        record = {
            "user_id": user_id,
            "name": self._require_text(payload, "name", "DOPE card"),
            "rifle": self._require_text(payload, "rifle", "DOPE card"),
            "calibre": self._require_text(payload, "calibre", "DOPE card"),
        }

        if not self._remote_enabled(self.supabase_dope_cards_table):
            return self._insert_local(self.local_dope_cards_path, record, self._normalise_dope_card_row)

        try:
            rows = self._remote_call(
                "post",
                self.supabase_dope_cards_table,
                [("select", DOPE_CARD_FIELDS)],
                json=record,
                prefer="return=representation",
            )
        except httpx.HTTPError as exc:
            self._raise_for_rejection(exc, "create_dope_card")
            return self._insert_local(self.local_dope_cards_path, record, self._normalise_dope_card_row)

        created = self._first_row(rows)
        if created is None:
            raise RuntimeError("Unexpected response when creating DOPE card")
        return self._normalise_dope_card_row(created)

    def update_dope_card(self, user_id: str, card_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        existing = self.fetch_dope_card(user_id, card_id)
        changes = {
            key: self._require_text(payload, key, "DOPE card")
            for key in ("name", "rifle", "calibre")
            if key in payload
        }
        if not changes:
            return existing

        if not self._remote_enabled(self.supabase_dope_cards_table):
            return self._update_local_dope_card(user_id, card_id, changes)

        params: Params = [
            ("id", f"eq.{card_id}"),
            ("user_id", f"eq.{user_id}"),
            ("select", DOPE_CARD_FIELDS),
        ]
        try:
            rows = self._remote_call(
                "patch", self.supabase_dope_cards_table, params, json=changes, prefer="return=representation"
            )
        except httpx.HTTPError as exc:
            self._raise_for_rejection(exc, "update_dope_card")
            return self._update_local_dope_card(user_id, card_id, changes)

        updated = self._first_row(rows)
        if updated is None:
            raise ValueError("DOPE card not found")
        return self._normalise_dope_card_row(updated)

    def delete_dope_card(self, user_id: str, card_id: str) -> None:
        if not self._remote_enabled(self.supabase_dope_cards_table):
            self._delete_local_dope_card(user_id, card_id)
            return

        # dope_ranges rows cascade on delete in the database.
        params: Params = [("id", f"eq.{card_id}"), ("user_id", f"eq.{user_id}")]
        try:
            rows = self._remote_call("delete", self.supabase_dope_cards_table, params, prefer="return=representation")
        except httpx.HTTPError as exc:
            self._raise_for_rejection(exc, "delete_dope_card")
            self._delete_local_dope_card(user_id, card_id)
            return

        if not rows:
            raise ValueError("DOPE card not found")

    @staticmethod
    def _normalise_dope_card_row(row: Dict[str, Any]) -> Dict[str, Any]:
        name = str(row.get("name") or "").strip()
        rifle = str(row.get("rifle") or "").strip()
        calibre = str(row.get("calibre") or "").strip()
        profile = f"{rifle} {calibre}".strip()
        label = " - ".join(part for part in (name, profile) if part)
        return {
            "id": str(row.get("id") or ""),
            "name": name,
            "rifle": rifle,
            "calibre": calibre,
            "label": label,
            "createdAt": row.get("created_at"),
        }

    # ------------------------------------------------------------------
    # DOPE ranges

    def fetch_dope_ranges(self, card_id: str) -> List[RangeEntry]:
        if not self._remote_enabled(self.supabase_dope_ranges_table):
            return self._load_local_dope_ranges(card_id)

        params: Params = [
            ("select", DOPE_RANGE_FIELDS),
            ("dope_card_id", f"eq.{card_id}"),
            ("order", "range.asc"),
        ]
        try:
            rows = self._remote_call("get", self.supabase_dope_ranges_table, params)
        except httpx.HTTPError as exc:
            logger.warning("Supabase fetch_dope_ranges failed (%s); using local fallback", exc)
            return self._load_local_dope_ranges(card_id)

        if not isinstance(rows, list):
            return []
        return [self._range_entry_from_row(row) for row in rows if isinstance(row, dict)]

    def save_dope_range(self, card_id: str, payload: Dict[str, Any]) -> RangeEntry:
        """Store the adjustment for one distance, replacing any existing entry for it."""
        entry = RangeEntry(
            distance=self._require_int(payload, "distance", "Distance"),
            elevation=self._coerce_float(payload.get("elevation")),
            windage=self._coerce_float(payload.get("windage")),
        )
        if entry.distance <= 0:
            raise ValueError("Distance must be a positive number of yards")

        if not self._remote_enabled(self.supabase_dope_ranges_table):
            return self._save_local_dope_range(card_id, entry)

        columns = {"range": entry.distance, "elevation": entry.elevation, "windage": entry.windage}
        lookup: Params = [
            ("select", DOPE_RANGE_FIELDS),
            ("dope_card_id", f"eq.{card_id}"),
            ("range", f"eq.{entry.distance}"),
            ("limit", 1),
        ]
        try:
            existing = self._first_row(self._remote_call("get", self.supabase_dope_ranges_table, lookup))
            if existing is not None:
                rows = self._remote_call(
                    "patch",
                    self.supabase_dope_ranges_table,
                    [("id", f"eq.{existing.get('id')}"), ("select", DOPE_RANGE_FIELDS)],
                    json=columns,
                    prefer="return=representation",
                )
            else:
                rows = self._remote_call(
                    "post",
                    self.supabase_dope_ranges_table,
                    [("select", DOPE_RANGE_FIELDS)],
                    json={"dope_card_id": card_id, **columns},
                    prefer="return=representation",
                )
        except httpx.HTTPError as exc:
            self._raise_for_rejection(exc, "save_dope_range")
            return self._save_local_dope_range(card_id, entry)

        saved = self._first_row(rows)
        if saved is None:
            raise RuntimeError("Unexpected response when saving DOPE range")
        return self._range_entry_from_row(saved)

    def delete_dope_range(self, card_id: str, range_id: str) -> None:
        if not self._remote_enabled(self.supabase_dope_ranges_table):
            self._delete_local_dope_range(card_id, range_id)
            return

        params: Params = [("id", f"eq.{range_id}"), ("dope_card_id", f"eq.{card_id}")]
        try:
            rows = self._remote_call("delete", self.supabase_dope_ranges_table, params, prefer="return=representation")
        except httpx.HTTPError as exc:
            self._raise_for_rejection(exc, "delete_dope_range")
            self._delete_local_dope_range(card_id, range_id)
            return

        if not rows:
            raise ValueError("Range entry not found")

    @staticmethod
    def _range_entry_from_row(row: Dict[str, Any]) -> RangeEntry:
        elevation = row.get("elevation")
        windage = row.get("windage")
        return RangeEntry(
            distance=int(row.get("range") or 0),
            elevation=None if elevation is None else float(elevation),
            windage=None if windage is None else float(windage),
            id=str(row.get("id") or "") or None,
        )

    # ---- internal Supabase helpers -------------------------------------------------

    def _remote_enabled(self, table: str) -> bool:
        return bool(self.supabase_url and self.supabase_key and table)

    def _supabase_endpoint(self, table: str) -> str:
        return f"{self.supabase_url.rstrip('/')}/rest/v1/{table}"

    def _supabase_headers(self, prefer: str | None = None, include_content_profile: bool = True) -> Dict[str, str]:
        headers = {
            "apikey": self.supabase_key,
            "Authorization": f"Bearer {self.supabase_key}",
            "Accept": "application/json",
        }
        if include_content_profile and self.supabase_schema and self.supabase_schema != "public":
            headers["Content-Profile"] = self.supabase_schema
        if self.supabase_schema and self.supabase_schema != "public":
            headers["Accept-Profile"] = self.supabase_schema
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _remote_call(
        self,
        method: str,
        table: str,
        params: Params,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        endpoint = self._supabase_endpoint(table)
        writes = method in ("post", "patch")
        headers = self._supabase_headers(prefer, include_content_profile=method != "get")
        if writes:
            headers["Content-Type"] = "application/json"

        with httpx.Client(timeout=10.0) as client:
            call = getattr(client, method)
            if writes:
                response = call(endpoint, params=params, json=json, headers=headers)
            else:
                response = call(endpoint, params=params, headers=headers)
            response.raise_for_status()
            if not response.content:
                return []
            return response.json()

    def _raise_for_rejection(self, exc: httpx.HTTPError, action: str) -> None:
        """Turn a 4xx from Supabase into ``ValueError``; log anything else for local fallback."""
        if isinstance(exc, httpx.HTTPStatusError):
            status_code = exc.response.status_code if exc.response is not None else None
            if status_code is not None and 400 <= status_code < 500:
                detail = self._extract_supabase_detail(exc.response)
                raise ValueError(detail or f"Supabase rejected {action} ({status_code})") from exc
        logger.warning("Supabase %s failed (%s); using local fallback", action, exc)

    @staticmethod
    def _first_row(rows: Any) -> Dict[str, Any] | None:
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return rows[0]
        if isinstance(rows, dict) and rows:
            return rows
        return None

    def _extract_supabase_detail(self, response: httpx.Response | None) -> str | None:
        if response is None:
            return None
        try:
            payload = response.json()
        except ValueError:
            text = (response.text or "").strip()
            return text or None

        if isinstance(payload, list) and payload:
            payload = payload[0]
        if isinstance(payload, dict):
            for key in ("message", "detail", "error", "hint", "code"):
                value = payload.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
        return None

    # ---- payload coercion ----------------------------------------------------------

    @staticmethod
    def _require_text(payload: Dict[str, Any], key: str, subject: str) -> str:
        value = str(payload.get(key) or "").strip()
        if not value:
            raise ValueError(f"{subject} {key} is required")
        return value

    @staticmethod
    def _require_int(payload: Dict[str, Any], key: str, label: str) -> int:
        value = payload.get(key)
        if value is None or value == "" or isinstance(value, bool):
            raise ValueError(f"{label} is required")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{label} must be a whole number") from exc

    @staticmethod
    def _coerce_float(value: Any) -> Optional[float]:
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid MOA value '{value}'") from exc

    @staticmethod
    def _coerce_text(value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def _coerce_date(self, value: Any) -> str:
        if isinstance(value, dt.datetime):
            return value.date().isoformat()
        if isinstance(value, dt.date):
            return value.isoformat()
        text = str(value or "").strip()
        if not text:
            raise ValueError("Session date is required")
        try:
            return dt.date.fromisoformat(text[:10]).isoformat()
        except ValueError as exc:
            raise ValueError(f"Invalid session date '{text}'") from exc

    # ---- local JSON fallback -------------------------------------------------------

    def _read_json_file(self, path: Path, default: Any) -> Any:
        try:
            if not path.exists():
                return default
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Falling back to default for %s due to read error: %s", path, exc)
            return default

    def _write_json_file(self, path: Path, data: Any) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
        except OSError as exc:
            raise RuntimeError(f"Failed to write local data store {path}") from exc

    def _read_rows(self, path: Path) -> List[Dict[str, Any]]:
        data = self._read_json_file(path, [])
        if not isinstance(data, list):
            return []
        return [row for row in data if isinstance(row, dict)]

    @staticmethod
    def _utc_now_iso() -> str:
        return dt.datetime.now(dt.UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")

    def _insert_local(
        self, path: Path, record: Dict[str, Any], normalise: Callable[[Dict[str, Any]], Any]
    ) -> Any:
        data = self._read_rows(path)
        row = dict(record)
        row["id"] = str(uuid.uuid4())
        row["created_at"] = self._utc_now_iso()
        data.append(row)
        self._write_json_file(path, data)
        return normalise(row)

    def _load_local_sessions(self, user_id: str, filters: SessionFilters) -> List[SessionRecord]:
        rows = [row for row in self._read_rows(self.local_sessions_path) if row.get("user_id") == user_id]
        rows.sort(key=lambda row: str(row.get("created_at") or ""), reverse=True)
        return filters.apply(self._records_from_rows(rows))

    def _local_session(self, user_id: str, session_id: str) -> SessionRecord:
        for row in self._read_rows(self.local_sessions_path):
            if row.get("id") == session_id and row.get("user_id") == user_id:
                return SessionRecord.from_row(row)
        raise ValueError("Session not found")

    def _update_local_session(self, user_id: str, session_id: str, changes: Dict[str, Any]) -> SessionRecord:
        data = self._read_rows(self.local_sessions_path)
        for row in data:
            if row.get("id") == session_id and row.get("user_id") == user_id:
                row.update(changes)
                self._write_json_file(self.local_sessions_path, data)
                return SessionRecord.from_row(row)
        raise ValueError("Session not found")

    def _delete_local_session(self, user_id: str, session_id: str) -> None:
        data = self._read_rows(self.local_sessions_path)
        remaining = [
            row for row in data if not (row.get("id") == session_id and row.get("user_id") == user_id)
        ]
        if len(remaining) == len(data):
            raise ValueError("Session not found")
        self._write_json_file(self.local_sessions_path, remaining)

    def _load_local_dope_cards(self, user_id: str) -> List[Dict[str, Any]]:
        rows = [row for row in self._read_rows(self.local_dope_cards_path) if row.get("user_id") == user_id]
        rows.sort(key=lambda row: str(row.get("created_at") or ""))
        return [self._normalise_dope_card_row(row) for row in rows]

    def _local_dope_card(self, user_id: str, card_id: str) -> Dict[str, Any]:
        for row in self._read_rows(self.local_dope_cards_path):
            if row.get("id") == card_id and row.get("user_id") == user_id:
                return self._normalise_dope_card_row(row)
        raise ValueError("DOPE card not found")

    def _update_local_dope_card(self, user_id: str, card_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        data = self._read_rows(self.local_dope_cards_path)
        for row in data:
            if row.get("id") == card_id and row.get("user_id") == user_id:
                row.update(changes)
                self._write_json_file(self.local_dope_cards_path, data)
                return self._normalise_dope_card_row(row)
        raise ValueError("DOPE card not found")

    def _delete_local_dope_card(self, user_id: str, card_id: str) -> None:
        data = self._read_rows(self.local_dope_cards_path)
        remaining = [row for row in data if not (row.get("id") == card_id and row.get("user_id") == user_id)]
        if len(remaining) == len(data):
            raise ValueError("DOPE card not found")
        self._write_json_file(self.local_dope_cards_path, remaining)

        ranges = self._read_rows(self.local_dope_ranges_path)
        kept = [row for row in ranges if row.get("dope_card_id") != card_id]
        if len(kept) != len(ranges):
            self._write_json_file(self.local_dope_ranges_path, kept)

    def _load_local_dope_ranges(self, card_id: str) -> List[RangeEntry]:
        rows = [row for row in self._read_rows(self.local_dope_ranges_path) if row.get("dope_card_id") == card_id]
        entries = [self._range_entry_from_row(row) for row in rows]
        entries.sort(key=lambda entry: entry.distance)
        return entries

    def _save_local_dope_range(self, card_id: str, entry: RangeEntry) -> RangeEntry:
        data = self._read_rows(self.local_dope_ranges_path)
        others = [row for row in data if row.get("dope_card_id") != card_id]
        card_rows = [row for row in data if row.get("dope_card_id") == card_id]
        created_at = {row.get("id"): row.get("created_at") for row in card_rows}

        entries = upsert_range_entry([self._range_entry_from_row(row) for row in card_rows], entry)
        saved = next(item for item in entries if item.distance == entry.distance)
        if saved.id is None:
            saved_with_id = RangeEntry(saved.distance, saved.elevation, saved.windage, id=str(uuid.uuid4()))
            entries = [saved_with_id if item is saved else item for item in entries]
            saved = saved_with_id

        rows = [
            {
                "id": item.id,
                "dope_card_id": card_id,
                "range": item.distance,
                "elevation": item.elevation,
                "windage": item.windage,
                "created_at": created_at.get(item.id) or self._utc_now_iso(),
            }
            for item in entries
        ]
        self._write_json_file(self.local_dope_ranges_path, others + rows)
        return saved

    def _delete_local_dope_range(self, card_id: str, range_id: str) -> None:
        data = self._read_rows(self.local_dope_ranges_path)
        remaining = [row for row in data if not (row.get("id") == range_id and row.get("dope_card_id") == card_id)]
        if len(remaining) == len(data):
            raise ValueError("Range entry not found")
        self._write_json_file(self.local_dope_ranges_path, remaining)
