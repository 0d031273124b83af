"""Turn pandas/numpy/dataclass results into JSON-safe primitives."""

from __future__ import annotations
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
import json
import math
import uuid

import numpy as np
import pandas as pd


def _clean_scalar(v):
    if v is None:
        return None
    if isinstance(v, (np.bool_, bool)):
        return bool(v)
    if isinstance(v, np.integer):
        return int(v)
    if isinstance(v, (np.floating, float)):
        f = float(v)
        return f if math.isfinite(f) else None
    if isinstance(v, Decimal):
        f = float(v)
        return f if math.isfinite(f) else None
    if isinstance(v, pd.Timestamp):
        return None if pd.isna(v) else v.to_pydatetime().isoformat()
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, uuid.UUID):
        return str(v)
    if isinstance(v, (int, str)):
        return v
    try:
        if pd.isna(v):
            return None
    except (TypeError, ValueError):
        pass
    return str(v)


def clean_jsonable(obj):
    if hasattr(obj, "to_dict") and is_dataclass(obj):
        return clean_jsonable(obj.to_dict())
    if is_dataclass(obj) and not isinstance(obj, type):
        return clean_jsonable(asdict(obj))
    if isinstance(obj, pd.DataFrame):
        return [clean_jsonable(r) for r in obj.to_dict(orient="records")]
    if isinstance(obj, pd.Series):
        return {str(k): clean_jsonable(v) for k, v in obj.to_dict().items()}
    if isinstance(obj, dict):
        return {str(k): clean_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [clean_jsonable(v) for v in obj]
    return _clean_scalar(obj)


def assert_jsonable(obj):
    try:
        json.dumps(obj, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise RuntimeError(f"Payload not JSON-serializable: {e}\nFirst part: {str(obj)[:500]}") from e
