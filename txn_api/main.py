from __future__ import annotations

import logging
import math

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from txn_api.schemas import FilterSelectionModel, MetaOptionsResponse
from txn_core.config import HISTOGRAM_BINS, LOG_LEVEL, TABLE_PAGE_SIZE, get_cors_origins
from txn_core.data import TransactionDataset, dataset_options, load_dashboard_data
from txn_core.engine import prepare_context
from txn_core.filters import FilterSelection, normalize_filters
from txn_core.metrics_breakdown import compute_breakdown
from txn_core.metrics_overview import compute_overview
from txn_core.metrics_profile import compute_profile
from txn_core.metrics_table import compute_table


logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
app = FastAPI(title="Transaction & Fraud Analytics API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: FilterSelectionModel, *, dataset: TransactionDataset) -> FilterSelection:
    raw = model.model_dump()
    return normalize_filters(raw, dataset=dataset)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/options")
def meta_options():
    try:
        dataset = load_dashboard_data()
        payload = MetaOptionsResponse(**dataset_options(dataset))
        return _json(payload.model_dump())
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.post("/overview")
def overview(filters: FilterSelectionModel):
    try:
        dataset = load_dashboard_data()
        f = _filters_from_model(filters, dataset=dataset)
        ctx = prepare_context(f, dataset)
        return _json(compute_overview(f, ctx))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.post("/breakdown")
def breakdown(filters: FilterSelectionModel):
    try:
        dataset = load_dashboard_data()
        f = _filters_from_model(filters, dataset=dataset)
        ctx = prepare_context(f, dataset)
        return _json(compute_breakdown(f, ctx))
    except Exception as exc:
        logger.exception("breakdown failed")
        return _error(exc)


@app.post("/profile")
def profile(filters: FilterSelectionModel, bins: int = Query(default=HISTOGRAM_BINS, ge=1, le=200)):
    try:
        dataset = load_dashboard_data()
        f = _filters_from_model(filters, dataset=dataset)
        ctx = prepare_context(f, dataset)
        return _json(compute_profile(f, ctx, bins=bins))
    except Exception as exc:
        logger.exception("profile failed")
        return _error(exc)


@app.post("/table")
def table(
    filters: FilterSelectionModel,
    q: str = Query(default=""),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=TABLE_PAGE_SIZE, ge=1, le=500),
):
    try:
        dataset = load_dashboard_data()
        f = _filters_from_model(filters, dataset=dataset)
        ctx = prepare_context(f, dataset)
        return _json(compute_table(f, ctx, q=q, page=page, page_size=page_size))
    except Exception as exc:
        logger.exception("table failed")
        return _error(exc)


@app.post("/export")
def export(filters: FilterSelectionModel):
    dataset = load_dashboard_data()
    f = _filters_from_model(filters, dataset=dataset)
    ctx = prepare_context(f, dataset)
    export_df: pd.DataFrame = ctx.get("filtered", pd.DataFrame())
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(
        content=csv_bytes,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=transactions_filtered.csv"},
    )
