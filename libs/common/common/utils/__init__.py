from .json_model import ImmutableJsonModel, JsonModel
from .serialization import SerializationError, decode_json, encode_json
from .utils import deep_merge, get_logger, get_now, get_now_ms, is_dict

__all__ = [
    "ImmutableJsonModel",
    "JsonModel",
    "SerializationError",
    "decode_json",
    "deep_merge",
    "encode_json",
    "get_logger",
    "get_now",
    "get_now_ms",
    "is_dict",
]
