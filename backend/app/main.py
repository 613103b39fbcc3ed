from __future__ import annotations

import datetime as dt
import logging
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field, field_validator

from shottracker_core import (
    STANDARD_DISTANCES,
    DataStore,
    ReconciledRangeRow,
    SessionFilters,
    ShotSequence,
    calculate_score,
    format_range_table_as_text,
    format_score,
    format_sessions_as_delimited,
    reconcile_ranges,
    remove_markers,
    summarise_sessions,
)
from shottracker_core.export import export_filename, range_table_filename
from shottracker_core.ranges import format_moa
from shottracker_core.shots import BULLSEYE_POINTS, MAX_RING_VALUE, SHOTS_PER_CARD

app = FastAPI(title="ShotTracker API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SHOT_OPTIONS = ["", "V", *[str(value) for value in range(MAX_RING_VALUE, -1, -1)]]

logger = logging.getLogger(__name__)

ShotToken = Optional[Union[int, str]]


def _validate_shots(value: Optional[List[ShotToken]]) -> Optional[List[str]]:
    if value is None:
        return None
    return ShotSequence.from_raw(value).to_raw()


class ScorePreviewRequest(BaseModel):
    shots: List[ShotToken] = Field(min_length=SHOTS_PER_CARD, max_length=SHOTS_PER_CARD)
    markers_removed: bool = Field(default=False, alias="markersRemoved")

    model_config = ConfigDict(populate_by_name=True)

    normalise_shots = field_validator("shots")(_validate_shots)


class ScorePreviewResponse(BaseModel):
    total_score: int = Field(alias="totalScore")
    v_count: int = Field(alias="vCount")
    label: str
    markers_removed: bool = Field(alias="markersRemoved")
    adjusted_total_score: int = Field(alias="adjustedTotalScore")
    adjusted_v_count: int = Field(alias="adjustedVCount")
    adjusted_label: str = Field(alias="adjustedLabel")

    model_config = ConfigDict(populate_by_name=True)


class SessionCreatePayload(BaseModel):
    name: str
    date: dt.date
    rifle: str
    calibre: str
    bullet_weight: int = Field(alias="bulletWeight", gt=0)
    distance: int = Field(gt=0)
    elevation: Optional[float] = None
    windage: Optional[float] = None
    shots: List[ShotToken] = Field(min_length=SHOTS_PER_CARD, max_length=SHOTS_PER_CARD)
    notes: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoUrl")

    model_config = ConfigDict(populate_by_name=True)

    normalise_shots = field_validator("shots")(_validate_shots)


class SessionUpdatePayload(BaseModel):
    name: Optional[str] = None
    date: Optional[dt.date] = None
    rifle: Optional[str] = None
    calibre: Optional[str] = None
    bullet_weight: Optional[int] = Field(default=None, alias="bulletWeight", gt=0)
    distance: Optional[int] = Field(default=None, gt=0)
    elevation: Optional[float] = None
    windage: Optional[float] = None
    shots: Optional[List[ShotToken]] = Field(
        default=None, min_length=SHOTS_PER_CARD, max_length=SHOTS_PER_CARD
    )
    notes: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoUrl")

    model_config = ConfigDict(populate_by_name=True)

    normalise_shots = field_validator("shots")(_validate_shots)


class SessionResponseModel(BaseModel):
    id: str
    name: str
    date: str
    rifle: str
    calibre: str
    bullet_weight: Optional[int] = Field(default=None, alias="bulletWeight")
    distance: Optional[int] = None
    elevation: Optional[float] = None
    windage: Optional[float] = None
    shots: List[str]
    total_score: int = Field(alias="totalScore")
    v_count: int = Field(alias="vCount")
    notes: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoUrl")
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class SessionListResponse(BaseModel):
    sessions: List[SessionResponseModel]


class SessionStatsResponse(BaseModel):
    total: int
    average: float
    best: str


class DopeCardCreatePayload(BaseModel):
    name: str
    rifle: str
    calibre: str


class DopeCardUpdatePayload(BaseModel):
    name: Optional[str] = None
    rifle: Optional[str] = None
    calibre: Optional[str] = None


class DopeCardResponseModel(BaseModel):
    id: str
    name: str
    rifle: str
    calibre: str
    label: str
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class DopeCardListResponse(BaseModel):
    cards: List[DopeCardResponseModel]


class RangeEntryPayload(BaseModel):
    distance: int = Field(gt=0)
    elevation: Optional[float] = None
    windage: Optional[float] = None


class RangeEntryModel(BaseModel):
    id: Optional[str] = None
    distance: int
    elevation: Optional[float] = None
    windage: Optional[float] = None


class ReconciledRowModel(BaseModel):
    distance: int
    elevation: Optional[float] = None
    windage: Optional[float] = None
    elevation_display: str = Field(alias="elevationDisplay")
    windage_display: str = Field(alias="windageDisplay")
    has_data: bool = Field(alias="hasData")
    entry_id: Optional[str] = Field(default=None, alias="entryId")

    model_config = ConfigDict(populate_by_name=True)


class DopeRangesResponse(BaseModel):
    card: DopeCardResponseModel
    rows: List[ReconciledRowModel]
    other_entries: List[RangeEntryModel] = Field(alias="otherEntries")

    model_config = ConfigDict(populate_by_name=True)


@lru_cache(maxsize=1)
def store() -> DataStore:
    return DataStore()


def require_user(authorization: str = Header(default="")) -> Dict[str, Any]:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authorization token is required")

    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Authorization token is required")

    supabase_url = os.getenv("SUPABASE_URL", "").rstrip("/")
    supabase_anon_key = os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_SERVICE_KEY")
    if not supabase_url or not supabase_anon_key:
        raise HTTPException(status_code=500, detail="Supabase configuration is incomplete")

    endpoint = f"{supabase_url}/auth/v1/user"
    headers = {
        "Authorization": f"Bearer {token}",
        "apikey": supabase_anon_key,
    }

    try:
        with httpx.Client(timeout=10.0) as client:
            response = client.get(endpoint, headers=headers)
            response.raise_for_status()
            payload = response.json()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code if exc.response else 502
        if status in (401, 403):
            raise HTTPException(status_code=401, detail="Invalid authentication token") from exc
        raise HTTPException(status_code=502, detail="Failed to verify authentication token") from exc
    except httpx.HTTPError as exc:
        raise HTTPException(status_code=502, detail="Failed to verify authentication token") from exc

    user_id = str(payload.get("id") or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    payload["id"] = user_id
    return payload


def session_filters(
    name: Optional[str] = Query(default=None),
    rifle: Optional[str] = Query(default=None),
    distance: Optional[int] = Query(default=None),
    date_from: Optional[dt.date] = Query(default=None, alias="dateFrom"),
    date_to: Optional[dt.date] = Query(default=None, alias="dateTo"),
) -> SessionFilters:
    return SessionFilters(
        name=name or None,
        rifle=rifle or None,
        distance=distance or None,
        date_from=date_from.isoformat() if date_from else None,
        date_to=date_to.isoformat() if date_to else None,
    )


def _store_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ValueError):
        status = 404 if str(exc).endswith("not found") else 400
        return HTTPException(status_code=status, detail=str(exc))
    logger.exception("Data store operation failed")
    return HTTPException(status_code=502, detail=str(exc))


def _reconciled_row_model(row: ReconciledRangeRow) -> ReconciledRowModel:
    return ReconciledRowModel(
        distance=row.distance,
        elevation=row.elevation,
        windage=row.windage,
        elevationDisplay=format_moa(row.elevation),
        windageDisplay=format_moa(row.windage),
        hasData=row.has_data,
        entryId=row.entry_id,
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/reference")
def reference() -> dict:
    return {
        "standardDistances": list(STANDARD_DISTANCES),
        "shotOptions": SHOT_OPTIONS,
        "shotsPerCard": SHOTS_PER_CARD,
        "bullseyePoints": BULLSEYE_POINTS,
    }


@app.post("/score", response_model=ScorePreviewResponse)
def score(payload: ScorePreviewRequest):
    shots = ShotSequence.from_raw(payload.shots)
    result = calculate_score(shots)
    adjusted = remove_markers(result, shots) if payload.markers_removed else result
    return ScorePreviewResponse(
        totalScore=result.total_score,
        vCount=result.v_count,
        label=format_score(result),
        markersRemoved=payload.markers_removed,
        adjustedTotalScore=adjusted.total_score,
        adjustedVCount=adjusted.v_count,
        adjustedLabel=format_score(adjusted),
    )


@app.get("/sessions", response_model=SessionListResponse)
def list_sessions(
    filters: SessionFilters = Depends(session_filters),
    user: Dict[str, Any] = Depends(require_user),
):
    try:
        sessions = store().fetch_sessions(user["id"], filters)
    except RuntimeError as exc:
        raise _store_error(exc) from exc
    return SessionListResponse(sessions=[SessionResponseModel(**item) for item in sessions])


@app.get("/sessions/stats", response_model=SessionStatsResponse)
def session_stats(
    filters: SessionFilters = Depends(session_filters),
    user: Dict[str, Any] = Depends(require_user),
):
    try:
        records = store().fetch_session_records(user["id"], filters)
    except RuntimeError as exc:
        raise _store_error(exc) from exc
    stats = summarise_sessions(records)
    return SessionStatsResponse(total=stats.total, average=stats.average, best=stats.best)


@app.get("/sessions/export.csv")
def export_sessions(
    filters: SessionFilters = Depends(session_filters),
    user: Dict[str, Any] = Depends(require_user),
):
    try:
        records = store().fetch_session_records(user["id"], filters)
    except RuntimeError as exc:
        raise _store_error(exc) from exc

    content = format_sessions_as_delimited(records)
    filename = export_filename(filters)
    logger.info("Exported %d sessions for user %s as %s", len(records), user["id"], filename)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/sessions", response_model=SessionResponseModel, status_code=201)
def create_session(payload: SessionCreatePayload, user: Dict[str, Any] = Depends(require_user)):
    try:
        record = store().create_session(user["id"], payload.model_dump(by_alias=True, mode="json"))
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc
    return SessionResponseModel(**record)


@app.get("/sessions/{session_id}", response_model=SessionResponseModel)
def get_session(session_id: str, user: Dict[str, Any] = Depends(require_user)):
    try:
        record = store().fetch_session(user["id"], session_id)
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc
    return SessionResponseModel(**record)


@app.patch("/sessions/{session_id}", response_model=SessionResponseModel)
def update_session(
    session_id: str,
    payload: SessionUpdatePayload,
    user: Dict[str, Any] = Depends(require_user),
):
    try:
        changes = payload.model_dump(by_alias=True, exclude_unset=True, mode="json")
        record = store().update_session(user["id"], session_id, changes)
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc
    return SessionResponseModel(**record)


@app.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str, user: Dict[str, Any] = Depends(require_user)):
    try:
        store().delete_session(user["id"], session_id)
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc
    return Response(status_code=204)


@app.get("/dope-cards", response_model=DopeCardListResponse)
def list_dope_cards(user: Dict[str, Any] = Depends(require_user)):
    try:
        cards = store().fetch_dope_cards(user["id"])
    except RuntimeError as exc:
        raise _store_error(exc) from exc
    return DopeCardListResponse(cards=[DopeCardResponseModel(**card) for card in cards])


@app.post("/dope-cards", response_model=DopeCardResponseModel, status_code=201)
def create_dope_card(payload: DopeCardCreatePayload, user: Dict[str, Any] = Depends(require_user)):
    try:
        card = store().create_dope_card(user["id"], payload.model_dump())
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc
    return DopeCardResponseModel(**card)


@app.get("/dope-cards/{card_id}", response_model=DopeCardResponseModel)
def get_dope_card(card_id: str, user: Dict[str, Any] = Depends(require_user)):
    try:
        card = store().fetch_dope_card(user["id"], card_id)
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc
    return DopeCardResponseModel(**card)


@app.patch("/dope-cards/{card_id}", response_model=DopeCardResponseModel)
def update_dope_card(
    card_id: str,
    payload: DopeCardUpdatePayload,
    user: Dict[str, Any] = Depends(require_user),
):
    try:
        card = store().update_dope_card(user["id"], card_id, payload.model_dump(exclude_unset=True))
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc
    return DopeCardResponseModel(**card)


@app.delete("/dope-cards/{card_id}", status_code=204)
def delete_dope_card(card_id: str, user: Dict[str, Any] = Depends(require_user)):
    try:
        store().delete_dope_card(user["id"], card_id)
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc
    return Response(status_code=204)


@app.get("/dope-cards/{card_id}/ranges", response_model=DopeRangesResponse)
def dope_card_ranges(card_id: str, user: Dict[str, Any] = Depends(require_user)):
    try:
        card = store().fetch_dope_card(user["id"], card_id)
        entries = store().fetch_dope_ranges(card_id)
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc

    standard = set(STANDARD_DISTANCES)
    return DopeRangesResponse(
        card=DopeCardResponseModel(**card),
        rows=[_reconciled_row_model(row) for row in reconcile_ranges(entries)],
        otherEntries=[
            RangeEntryModel(
                id=entry.id,
                distance=entry.distance,
                elevation=entry.elevation,
                windage=entry.windage,
            )
            for entry in entries
            if entry.distance not in standard
        ],
    )


@app.put("/dope-cards/{card_id}/ranges", response_model=RangeEntryModel)
def save_dope_range(
    card_id: str,
    payload: RangeEntryPayload,
    user: Dict[str, Any] = Depends(require_user),
):
    try:
        store().fetch_dope_card(user["id"], card_id)
        entry = store().save_dope_range(card_id, payload.model_dump())
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc
    return RangeEntryModel(id=entry.id, distance=entry.distance, elevation=entry.elevation, windage=entry.windage)


@app.delete("/dope-cards/{card_id}/ranges/{range_id}", status_code=204)
def delete_dope_range(card_id: str, range_id: str, user: Dict[str, Any] = Depends(require_user)):
    try:
        store().fetch_dope_card(user["id"], card_id)
        store().delete_dope_range(card_id, range_id)
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc
    return Response(status_code=204)


@app.get("/dope-cards/{card_id}/export.txt")
def export_dope_card(card_id: str, user: Dict[str, Any] = Depends(require_user)):
    try:
        card = store().fetch_dope_card(user["id"], card_id)
        entries = store().fetch_dope_ranges(card_id)
    except (ValueError, RuntimeError) as exc:
        raise _store_error(exc) from exc

    content = format_range_table_as_text(card["label"], reconcile_ranges(entries))
    filename = range_table_filename(card["label"])
    return Response(
        content=content,
        media_type="text/plain",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
