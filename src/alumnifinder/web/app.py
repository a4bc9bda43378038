"""FastAPI application exposing directory search and the contact relay."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from alumnifinder.config import AppConfig
from alumnifinder.index.directory import Directory
from alumnifinder.index.search import Searcher, SearchResult
from alumnifinder.index.storage import SQLiteStateStore, StateStore
from alumnifinder.ingestion.fetcher import DatasetFetcher
from alumnifinder.messaging.gate import GateErrorKind, GateOutcome, OutboundMessageGate
from alumnifinder.messaging.relay import RelayClient
from alumnifinder.models import Alumnus, ContactMode, ContactRequest, SearchFilters

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="AlumniFinder Web", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_directory: Directory | None = None


class SearchPayload(BaseModel):
    query: str = ""
    bac: str = ""
    pays: str = ""
    profession: str = ""
    etudes: str = ""
    lieu_naiss: str = ""
    limit: int | None = None


class ContactPayload(BaseModel):
    id: str
    sender_name: str
    sender_email: str
    message: str


def _get_directory() -> Directory:
    global _directory
    if _directory is None:
        config = AppConfig()
        _directory = Directory(DatasetFetcher(config.csv_url, timeout=config.timeout))
    return _directory


def _open_store() -> SQLiteStateStore:
    state_path = AppConfig().resolve_state_path(Path.cwd())
    state_path.parent.mkdir(parents=True, exist_ok=True)
    return SQLiteStateStore(state_path)


def _build_gate(store: StateStore) -> OutboundMessageGate:
    config = AppConfig()
    relay = RelayClient(config.relay_url, timeout=config.timeout)
    return OutboundMessageGate(store, relay, limit=config.daily_limit, window_ms=config.window_ms)


def _run_submission(alumnus: Alumnus, request: ContactRequest, mode: ContactMode) -> GateOutcome:
    store = _open_store()
    try:
        return _build_gate(store).submit(alumnus, request, mode)
    finally:
        store.close()


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.post("/search")
async def search_alumni(payload: SearchPayload) -> dict[str, Any]:
    directory = _get_directory()
    await asyncio.to_thread(directory.ensure_loaded)

    filters = SearchFilters(
        query=payload.query,
        bac=payload.bac,
        pays=payload.pays,
        profession=payload.profession,
        etudes=payload.etudes,
        lieu_naiss=payload.lieu_naiss,
    )
    limit = max(1, payload.limit) if payload.limit is not None else None
    results: List[SearchResult] = Searcher(directory.records).search(filters, limit=limit)
    return {"results": results, "total": len(results)}


@app.get("/alumni/{alumnus_id}")
async def get_alumnus(alumnus_id: str) -> dict[str, str]:
    directory = _get_directory()
    await asyncio.to_thread(directory.ensure_loaded)
    alumnus = directory.get(alumnus_id)
    if alumnus is None:
        raise HTTPException(status_code=404, detail=f"Alumnus {alumnus_id} not found")
    return {"id": alumnus.id, "display_name": alumnus.display_name, "bac": alumnus.bac}


@app.post("/reload")
async def reload_directory() -> dict[str, Any]:
    directory = _get_directory()
    stats = await asyncio.to_thread(directory.load)
    return {
        "status": "ok",
        "records": len(directory),
        "stats": {"rows": stats.rows, "kept": stats.kept, "skipped": stats.skipped, "dropped": stats.dropped},
    }


@app.get("/quota")
async def get_quota() -> dict[str, int]:
    store = _open_store()
    try:
        gate = _build_gate(store)
        remaining = gate.remaining()
    finally:
        store.close()
    return {"remaining": remaining, "limit": gate.limit}


async def _submit(payload: ContactPayload, mode: ContactMode) -> dict[str, str]:
    try:
        request = ContactRequest(
            sender_name=payload.sender_name,
            sender_email=payload.sender_email,
            message=payload.message,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    directory = _get_directory()
    await asyncio.to_thread(directory.ensure_loaded)
    alumnus = directory.get(payload.id)
    if alumnus is None:
        raise HTTPException(status_code=404, detail=f"Alumnus {payload.id} not found")

    outcome = await asyncio.to_thread(_run_submission, alumnus, request, mode)

    if outcome.error_kind is GateErrorKind.QUOTA_EXCEEDED:
        raise HTTPException(status_code=429, detail=outcome.message)
    if outcome.error_kind is GateErrorKind.CONNECTION_FAILURE:
        raise HTTPException(status_code=502, detail=outcome.message)
    # Dispatched only: the relay's reply is not observable.
    return {"status": outcome.status.value}


@app.post("/contact")
async def contact_alumnus(payload: ContactPayload) -> dict[str, str]:
    return await _submit(payload, "contact")


@app.post("/report")
async def report_alumnus(payload: ContactPayload) -> dict[str, str]:
    return await _submit(payload, "report")
