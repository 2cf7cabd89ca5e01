from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from config import get_config
from errors import NotFoundError, PersistenceError, ValidationError, ValidationKind
from library import (
    CATEGORIES,
    CATEGORY_ICONS,
    DEFAULT_CATEGORY,
    DEFAULT_STATUS,
    FILTERS,
    STATUS_DISPLAY_NAMES,
    STATUSES,
    BookStore,
    open_store,
    record_to_dict,
)
from views import filter_counts, filtered_view, statistics

logger = logging.getLogger(__name__)

FILTER_PATTERN = "^(" + "|".join(FILTERS) + ")$"


# -----------------------------------------------------------------------------
# Application setup
# -----------------------------------------------------------------------------

app = FastAPI(title="Read Stack API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store() -> BookStore:
    if not hasattr(get_store, "_instance"):
        get_store._instance = open_store()
    return get_store._instance  # type: ignore[attr-defined]


@app.on_event("shutdown")
def _shutdown() -> None:
    store = getattr(get_store, "_instance", None)
    if isinstance(store, BookStore):
        store.close()


# -----------------------------------------------------------------------------
# Pydantic models
# -----------------------------------------------------------------------------


class BookCreate(BaseModel):
    title: str = ""
    author: str = ""
    category: str = DEFAULT_CATEGORY
    status: str = DEFAULT_STATUS
    notes: str = ""


class BookUpdate(BaseModel):
    title: str = ""
    author: str = ""
    notes: str = ""


class StatsResponse(BaseModel):
    total: int
    finished: int
    completion: int
    counts: Dict[str, int]


class OptionsResponse(BaseModel):
    categories: List[Dict[str, str]] = Field(default_factory=list)
    statuses: List[Dict[str, str]] = Field(default_factory=list)
    filters: List[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Helper utilities
# -----------------------------------------------------------------------------


def _validation_exception(error: ValidationError) -> HTTPException:
    code = (
        status.HTTP_409_CONFLICT
        if error.kind is ValidationKind.DUPLICATE_BOOK
        else status.HTTP_400_BAD_REQUEST
    )
    return HTTPException(status_code=code, detail={"kind": error.kind.value, "message": error.message})


def _persistence_exception(error: PersistenceError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"{error} The change is kept in memory until the next successful save.",
    )


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@app.get("/api/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/books")
def list_books(
    filter: str = Query("all", pattern=FILTER_PATTERN),
    store: BookStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    return [record_to_dict(book) for book in filtered_view(store.records, filter)]


@app.get("/api/books/{book_id}")
def get_book(book_id: str, store: BookStore = Depends(get_store)) -> Dict[str, Any]:
    record = store.get(book_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return record_to_dict(record)


@app.post("/api/books", status_code=status.HTTP_201_CREATED)
def create_book(payload: BookCreate, store: BookStore = Depends(get_store)) -> Dict[str, Any]:
    try:
        record = store.add(payload.model_dump())
    except ValidationError as exc:
        raise _validation_exception(exc)
    except PersistenceError as exc:
        raise _persistence_exception(exc)
    return record_to_dict(record)


@app.put("/api/books/{book_id}")
def update_book(
    book_id: str,
    payload: BookUpdate,
    store: BookStore = Depends(get_store),
) -> Dict[str, Any]:
    try:
        record = store.edit(book_id, payload.title, payload.author, payload.notes)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    except ValidationError as exc:
        raise _validation_exception(exc)
    except PersistenceError as exc:
        raise _persistence_exception(exc)
    return record_to_dict(record)


@app.delete(
    "/api/books/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    response_model=None,
)
def delete_book(book_id: str, store: BookStore = Depends(get_store)) -> Response:
    try:
        store.delete(book_id)
    except PersistenceError as exc:
        raise _persistence_exception(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/api/stats", response_model=StatsResponse)
def get_stats(store: BookStore = Depends(get_store)) -> StatsResponse:
    books = store.records
    stats = statistics(books)
    return StatsResponse(
        total=stats.total,
        finished=stats.finished,
        completion=stats.completion,
        counts=filter_counts(books),
    )


@app.get("/api/options", response_model=OptionsResponse)
def get_options() -> OptionsResponse:
    return OptionsResponse(
        categories=[{"value": name, "icon": CATEGORY_ICONS[name]} for name in CATEGORIES],
        statuses=[{"value": value, "label": STATUS_DISPLAY_NAMES[value]} for value in STATUSES],
        filters=list(FILTERS),
    )
