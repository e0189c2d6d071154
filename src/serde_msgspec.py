"""msgspec policy for pytemplate settings and machine-readable output."""

from __future__ import annotations

import re

import msgspec


class StructBaseStrict(
    msgspec.Struct,
    frozen=True,
    kw_only=True,
    omit_defaults=True,
    repr_omit_defaults=True,
    forbid_unknown_fields=True,
):
    """Base struct for settings that reject unknown keys."""


_VALIDATION_RE = re.compile(r"^(?P<summary>.*?)(?:\s+-\s+at\s+`(?P<path>[^`]+)`)?$")


def loads_toml[T](buf: bytes | str, *, target_type: type[T], strict: bool = True) -> T:
    """Decode a TOML document into the requested type.

    Parameters
    ----------
    buf
        TOML payload.
    target_type
        Target type for decoding; ``object`` keeps builtin containers.
    strict
        Whether to enforce strict decoding.

    Returns
    -------
    T
        Decoded payload.
    """
    return msgspec.toml.decode(buf, type=target_type, strict=strict)


def convert[T](obj: object, *, target_type: type[T], strict: bool = True) -> T:
    """Convert builtin data, such as a TOML table, into a target type.

    Returns
    -------
    T
        Converted payload.
    """
    return msgspec.convert(obj, type=target_type, strict=strict)


def validation_error_payload(exc: msgspec.ValidationError) -> dict[str, str]:
    """Split a msgspec ValidationError into its summary and field path.

    Returns
    -------
    dict[str, str]
        Payload with ``type``, ``summary`` and, when present, ``path``.
    """
    message = str(exc).strip()
    match = _VALIDATION_RE.match(message)
    payload: dict[str, str] = {"type": exc.__class__.__name__, "summary": message}
    if match is None:
        return payload
    payload["summary"] = (match.group("summary") or message).strip()
    if match.group("path"):
        payload["path"] = match.group("path")
    return payload


def describe_validation_error(exc: msgspec.ValidationError) -> str:
    """Render a ValidationError as one line naming the offending setting.

    Returns
    -------
    str
        ``summary`` or ``summary (at path)``.
    """
    payload = validation_error_payload(exc)
    path = payload.get("path")
    if path is None:
        return payload["summary"]
    return f"{payload['summary']} (at {path.removeprefix('$.')})"


def dumps_json(obj: object, *, pretty: bool = False) -> bytes:
    """Serialize an object to JSON bytes with sorted keys.

    Returns
    -------
    bytes
        JSON payload, indented when ``pretty`` is set.
    """
    raw = msgspec.json.encode(obj, order="sorted")
    if not pretty:
        return raw
    return msgspec.json.format(raw, indent=2)


__all__ = [
    "StructBaseStrict",
    "convert",
    "describe_validation_error",
    "dumps_json",
    "loads_toml",
    "validation_error_payload",
]
