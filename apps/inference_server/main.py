"""FastAPI server exposing a saved GEOSCAN model for inference."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd
from cachetools import TTLCache
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from geoscan import __version__
from geoscan.errors import AmbiguousTileError, ConfigurationError, SchemaError
from geoscan.model import GeoscanModel
from geoscan.tools.config_loader import ConfigLoader, ServingConfig

from .schemas.models import (
    ModelInfo,
    ModelParams,
    PredictRequest,
    PredictResponse,
    Tile,
    TilesRequest,
    TilesResponse,
)


logger = logging.getLogger(__name__)


class ServingState:
    """Loaded model, serving profile and the tile tables built for it."""

    def __init__(self) -> None:
        self.model: Optional[GeoscanModel] = None
        self.config = ServingConfig()
        self.executor: Optional[Executor] = None
        self.lock = threading.Lock()
        self.tiles: TTLCache[Tuple[str, int, int], pd.DataFrame] = TTLCache(
            maxsize=self.config.tile_cache_size, ttl=self.config.tile_cache_ttl_sec
        )

    def configure(self, model: Optional[GeoscanModel], config: ServingConfig) -> None:
        self.shutdown()
        self.model = model
        self.config = config
        self.tiles = TTLCache(maxsize=config.tile_cache_size, ttl=config.tile_cache_ttl_sec)
        if config.max_workers > 1:
            self.executor = ThreadPoolExecutor(max_workers=config.max_workers)

    def shutdown(self) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=True)
            self.executor = None

    def get_tiles(self, precision: int, layers: int) -> pd.DataFrame:
        model = self.require_model()
        key = (model.uid, precision, layers)
        # TTLCache is not thread-safe; sync endpoints run on a thread pool
        with self.lock:
            tiles = self.tiles.get(key)
            if tiles is None:
                tiles = model.get_tiles(precision, layers, executor=self.executor)
                self.tiles[key] = tiles
        return tiles

    def require_model(self) -> GeoscanModel:
        if self.model is None:
            raise HTTPException(status_code=503, detail="No model loaded.")
        return self.model


state = ServingState()


def set_model(model: Optional[GeoscanModel], config: Optional[ServingConfig] = None) -> None:
    """Install ``model`` (and optionally a serving profile) on the running app."""

    state.configure(model, config or ServingConfig())


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(_app: FastAPI):
    load_dotenv()
    config = ConfigLoader.serving_config()
    _configure_logging(config.log_level)

    model = None
    if config.model_path:
        model = GeoscanModel.load(config.model_path)
    else:
        logger.warning("No model_path configured; /predict will answer 503")

    set_model(model, config)
    try:
        yield
    finally:
        state.shutdown()


app = FastAPI(title="GEOSCAN Inference Server", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _frame_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Rows as plain Python values with nulls as ``None``."""

    plain = df.astype(object)
    return plain.where(df.notna(), None).to_dict(orient="records")


@app.get("/health")
async def health_check() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/model")
async def model_info() -> Dict[str, Any]:
    model = state.require_model()
    try:
        precision = model.get_precision()
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    info = ModelInfo(
        uid=model.uid,
        params=ModelParams(**model.params.to_param_map()),
        precision=precision,
        num_clusters=len(model.shape),
        cluster_ids=list(model.shape.cluster_ids),
    )
    return info.model_dump(by_alias=True)


@app.get("/shape")
async def shape_geojson() -> Dict[str, Any]:
    return state.require_model().shape.to_dict()


@app.post("/predict")
def predict(request: PredictRequest) -> Dict[str, Any]:
    model = state.require_model()
    layers = state.config.layers if request.layers is None else request.layers
    tie_break = request.tie_break or state.config.tie_break

    try:
        precision = model.get_precision()
        enriched = model.transform(
            request.records,
            tie_break=tie_break,
            executor=state.executor,
            tiles=state.get_tiles(precision, layers),
        )
    except SchemaError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except AmbiguousTileError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    response = PredictResponse(
        records=_frame_records(enriched),
        precision=precision,
        layers=layers,
        matched=int(enriched[model.prediction_col].notna().sum()),
    )
    return response.model_dump()


@app.post("/tiles")
def tiles(request: TilesRequest) -> Dict[str, Any]:
    model = state.require_model()
    try:
        precision = model.get_precision() if request.precision is None else request.precision
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    table = state.get_tiles(precision, request.layers)
    rows = [
        Tile(cluster=row[model.prediction_col], h3=row["h3"], dilated=row["dilated"])
        for row in _frame_records(table)
    ]
    return TilesResponse(precision=precision, layers=request.layers, tiles=rows).model_dump()
