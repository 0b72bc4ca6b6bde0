"""
Model persistence: metadata and cluster data stored side by side.

Layout under the model directory::

    metadata   one JSON line: class, timestamp, uid, paramMap, defaultParamMap
    data       one line holding the whole shape as GeoJSON

Both artifacts may also be Spark-style directories of ``part-*`` text files,
which is how models written by the JVM implementation are laid out.

Saves are staged in a hidden sibling directory and renamed into place, so a
failed save never leaves a loadable half-written model behind.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Union

from ..errors import CorruptDataError, ModelExistsError, ModelNotFoundError
from .params import GeoscanParams
from .shape import GeoShape


logger = logging.getLogger(__name__)

METADATA_DIR = "metadata"
DATA_DIR = "data"

CLASS_TAG = "geoscan.model.GeoscanModel"
SPARK_CLASS_TAG = "com.databricks.labs.gis.ml.GeoscanModel"
ACCEPTED_CLASS_TAGS = (CLASS_TAG, SPARK_CLASS_TAG)

FORMAT_VERSION = 1

# Saved model directories get the usual rwxr-xr-x
STAGING_MODE = 0o755

PathLike = Union[str, os.PathLike]


def _write_record(path: Path, record: str) -> None:
    with path.open("w", encoding="utf-8") as handle:
        handle.write(record)
        handle.write("\n")


def read_text_records(artifact: Path) -> List[str]:
    """Return the non-blank lines of a text artifact (file or ``part-*`` dir)."""

    if not artifact.exists():
        raise ModelNotFoundError(f"Model artifact not found: {artifact}")

    if artifact.is_dir():
        parts = sorted(p for p in artifact.iterdir() if p.is_file() and p.name.startswith("part-"))
    else:
        parts = [artifact]

    records: List[str] = []
    for part in parts:
        with part.open("r", encoding="utf-8") as handle:
            records.extend(line.rstrip("\r\n") for line in handle if line.strip())
    return records


def _single_record(artifact: Path) -> str:
    records = read_text_records(artifact)
    if len(records) != 1:
        raise CorruptDataError(
            f"Expected exactly one record in {artifact}, found {len(records)}"
        )
    return records[0]


class ModelWriter:
    """Persist a model to a directory.

    Mirrors the fluent ``model.write().overwrite().save(path)`` API of ML
    pipelines. Without :meth:`overwrite`, saving onto an existing path fails.
    """

    def __init__(self, instance):
        self.instance = instance
        self._overwrite = False

    def overwrite(self) -> "ModelWriter":
        self._overwrite = True
        return self

    def metadata(self) -> Dict[str, Any]:
        return {
            "class": CLASS_TAG,
            "timestamp": int(time.time() * 1000),
            "uid": self.instance.uid,
            "paramMap": self.instance.params.to_param_map(),
            "defaultParamMap": GeoscanParams.default_param_map(),
            "formatVersion": FORMAT_VERSION,
        }

    def save(self, path: PathLike) -> Path:
        target = Path(path)
        if target.exists() and not self._overwrite:
            raise ModelExistsError(
                f"Path {target} already exists. Use write().overwrite().save(path) to replace it."
            )

        target.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent))
        try:
            # mkdtemp creates 0700 directories
            os.chmod(staging, STAGING_MODE)
            _write_record(staging / METADATA_DIR, json.dumps(self.metadata(), allow_nan=False))
            _write_record(staging / DATA_DIR, self.instance.shape.to_geojson())
            self._commit(staging, target)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info(
            "Saved model %s (%d clusters) to %s",
            self.instance.uid,
            len(self.instance.shape),
            target,
        )
        return target

    def _commit(self, staging: Path, target: Path) -> None:
        if not target.exists():
            os.rename(staging, target)
            return

        backup = target.with_name(f".{target.name}.{uuid.uuid4().hex[:8]}.old")
        os.replace(target, backup)
        try:
            os.replace(staging, target)
        except OSError:
            os.replace(backup, target)
            raise

        if backup.is_dir():
            shutil.rmtree(backup)
        else:
            backup.unlink()


class ModelReader:
    """Load a model saved by :class:`ModelWriter` (or by the Spark writer)."""

    def __init__(self, model_cls):
        self.model_cls = model_cls

    def load_metadata(self, path: Path) -> Dict[str, Any]:
        record = _single_record(path / METADATA_DIR)
        try:
            metadata = json.loads(record)
        except ValueError as exc:
            raise CorruptDataError(f"Model metadata is not valid JSON: {exc}") from exc

        if not isinstance(metadata, dict):
            raise CorruptDataError("Model metadata must be a JSON object")

        missing = [key for key in ("class", "uid", "paramMap") if key not in metadata]
        if missing:
            raise CorruptDataError(f"Model metadata is missing {', '.join(missing)}")

        if metadata["class"] not in ACCEPTED_CLASS_TAGS:
            raise CorruptDataError(
                f"Metadata describes a {metadata['class']}, expected {CLASS_TAG}"
            )
        return metadata

    def load_params(self, metadata: Dict[str, Any]) -> GeoscanParams:
        param_map: Dict[str, Any] = {}
        for key in ("defaultParamMap", "paramMap"):
            section = metadata.get(key) or {}
            if not isinstance(section, dict):
                raise CorruptDataError(f"Metadata field '{key}' must be an object")
            param_map.update(section)

        unknown = sorted(set(param_map) - set(GeoscanParams.known_params()))
        if unknown:
            logger.warning("Ignoring unknown model params: %s", ", ".join(unknown))

        try:
            return GeoscanParams.from_param_map(param_map)
        except (TypeError, ValueError) as exc:
            raise CorruptDataError(f"Invalid model params: {exc}") from exc

    def load_data(self, path: Path) -> GeoShape:
        return GeoShape.from_geojson(_single_record(path / DATA_DIR))

    def load(self, path: PathLike):
        path = Path(path)
        if not path.is_dir():
            raise ModelNotFoundError(f"No model directory at {path}")

        metadata = self.load_metadata(path)
        shape = self.load_data(path)
        instance = self.model_cls(
            uid=str(metadata["uid"]),
            shape=shape,
            params=self.load_params(metadata),
        )
        logger.info("Loaded model %s (%d clusters) from %s", instance.uid, len(shape), path)
        return instance


__all__ = [
    "ACCEPTED_CLASS_TAGS",
    "CLASS_TAG",
    "DATA_DIR",
    "METADATA_DIR",
    "ModelReader",
    "ModelWriter",
    "SPARK_CLASS_TAG",
    "STAGING_MODE",
    "read_text_records",
]
