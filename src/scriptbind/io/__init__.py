"""IO: script value marshalling."""

from .marshal import JsonValue, decode_json, encode_json, to_script_value

__all__ = ["JsonValue", "to_script_value", "encode_json", "decode_json"]
