"""Pydantic models for the GEOSCAN inference server."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from geoscan.spatial import TIE_BREAK_POLICIES


class ModelParams(BaseModel):
    epsilon: float
    min_pts: int = Field(..., alias="minPts")
    latitude_col: str = Field(..., alias="latitudeCol")
    longitude_col: str = Field(..., alias="longitudeCol")
    prediction_col: str = Field(..., alias="predictionCol")

    model_config = {"populate_by_name": True}


class ModelInfo(BaseModel):
    uid: str
    params: ModelParams
    precision: int = Field(..., description="H3 resolution derived from epsilon")
    num_clusters: int = Field(..., alias="numClusters")
    cluster_ids: List[Union[int, str]] = Field(default_factory=list, alias="clusterIds")

    model_config = {"populate_by_name": True}


class PredictRequest(BaseModel):
    records: List[Dict[str, Any]] = Field(
        ..., description="Rows to enrich; must carry the model's latitude/longitude columns"
    )
    layers: Optional[int] = Field(
        default=None, ge=0, le=10, description="Dilation rings (server default when omitted)"
    )
    tie_break: Optional[str] = Field(default=None, alias="tieBreak")

    model_config = {"populate_by_name": True}

    @field_validator("tie_break")
    @classmethod
    def _validate_tie_break(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in TIE_BREAK_POLICIES:
            raise ValueError(f"tieBreak must be one of {', '.join(TIE_BREAK_POLICIES)}")
        return value


class PredictResponse(BaseModel):
    records: List[Dict[str, Any]]
    precision: int
    layers: int
    matched: int = Field(..., description="Rows assigned to a cluster")


class TilesRequest(BaseModel):
    layers: int = Field(0, ge=0, le=10)
    precision: Optional[int] = Field(
        default=None, ge=0, le=15, description="H3 resolution (model precision when omitted)"
    )


class Tile(BaseModel):
    cluster: Union[int, str]
    h3: str
    dilated: bool = False


class TilesResponse(BaseModel):
    precision: int
    layers: int
    tiles: List[Tile]
