"""Public interface for the JSON data pack adapter."""

from __future__ import annotations

from .loader import DATAPACK_FILES, DatapackError, load_datapack
from .schema import PRICE_KEY_SEPARATOR, RECORD_MODELS, DatapackRecord

__all__ = [
    "DATAPACK_FILES",
    "PRICE_KEY_SEPARATOR",
    "RECORD_MODELS",
    "DatapackError",
    "DatapackRecord",
    "load_datapack",
]
