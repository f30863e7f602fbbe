from __future__ import annotations

import copy
import hashlib
import json
import math
from typing import Any, Dict, List

from andromeda.params import KIND_BOOL, KIND_WAVEFORM, WAVEFORMS, kind_of, param_spec, value_matches_kind
from andromeda.timeline import CURVES


def _err(errors: List[str], path: str, msg: str) -> None:
    errors.append(f"{path}: {msg}")


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def _kind_hint(path: str) -> str:
    kind = kind_of(path)
    if kind == KIND_WAVEFORM:
        return "one of " + "|".join(WAVEFORMS)
    if kind == KIND_BOOL:
        return "boolean"
    return "number"


def validate_timeline(doc: Any) -> List[str]:
    """Check a timeline document; returns human-readable errors with JSON-pointer-like paths.

    Only shape and type are checked. Out-of-range times are not errors:
    decoding rounds them and lifts negatives to 0.
    """
    errors: List[str] = []
    if not isinstance(doc, dict):
        _err(errors, "/", "timeline must be an object")
        return errors

    duration = doc.get("duration_ms")
    if not _is_number(duration) or float(duration) != int(duration) or int(duration) <= 0:
        _err(errors, "/duration_ms", "required positive integer")

    tracks = doc.get("tracks")
    if not isinstance(tracks, list):
        _err(errors, "/tracks", "required array")
        return errors

    for ti, tr in enumerate(tracks):
        tpath = f"/tracks/{ti}"
        if not isinstance(tr, dict):
            _err(errors, tpath, "must be object")
            continue
        path = tr.get("path")
        if not isinstance(path, str) or not path:
            _err(errors, f"{tpath}/path", "required non-empty string")
            path = None
        keyframes = tr.get("keyframes")
        if not isinstance(keyframes, list):
            _err(errors, f"{tpath}/keyframes", "required array")
            continue
        for ki, kf in enumerate(keyframes):
            kpath = f"{tpath}/keyframes/{ki}"
            if not isinstance(kf, dict):
                _err(errors, kpath, "must be object")
                continue
            if not _is_number(kf.get("time_ms")):
                _err(errors, f"{kpath}/time_ms", "required finite number")
            if "value" not in kf:
                _err(errors, f"{kpath}/value", "required")
            else:
                value = kf.get("value")
                if not (isinstance(value, (str, bool)) or _is_number(value)):
                    _err(errors, f"{kpath}/value", "must be number, string or boolean")
                elif path is not None and not value_matches_kind(path, value):
                    _err(errors, f"{kpath}/value", f"{_kind_hint(path)} required for '{path}'")
            curve = kf.get("curve")
            if curve is not None and curve not in CURVES:
                _err(errors, f"{kpath}/curve", "must be 'step'|'linear' if present")

    return errors


def validate_events(doc: Any) -> List[str]:
    """Check an externally produced event array (time_ms, path, value, curve?).

    Same rules as timeline keyframes, plus a non-negative time and a path on
    every event.
    """
    errors: List[str] = []
    if not isinstance(doc, list):
        _err(errors, "/", "events must be an array")
        return errors
    for i, ev in enumerate(doc):
        epath = f"/{i}"
        if not isinstance(ev, dict):
            _err(errors, epath, "must be object")
            continue
        t = ev.get("time_ms")
        if not _is_number(t) or t < 0:
            _err(errors, f"{epath}/time_ms", "required non-negative number")
        path = ev.get("path")
        if not isinstance(path, str) or not path:
            _err(errors, f"{epath}/path", "required non-empty string")
            path = None
        if "value" not in ev:
            _err(errors, f"{epath}/value", "required")
        else:
            value = ev.get("value")
            if not (isinstance(value, (str, bool)) or _is_number(value)):
                _err(errors, f"{epath}/value", "must be number, string or boolean")
            elif path is not None and not value_matches_kind(path, value):
                _err(errors, f"{epath}/value", f"{_kind_hint(path)} required for '{path}'")
        curve = ev.get("curve")
        if curve is not None and curve not in CURVES:
            _err(errors, f"{epath}/curve", "must be 'step'|'linear' if present")
    return errors


def unknown_paths(doc: Dict[str, Any]) -> List[str]:
    """Track paths the synth does not know (allowed, but worth a warning)."""
    out: List[str] = []
    for tr in doc.get("tracks") or []:
        if isinstance(tr, dict):
            p = tr.get("path")
            if isinstance(p, str) and param_spec(p) is None and p not in out:
                out.append(p)
    return out


def canonicalize(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Return a canonicalized deep copy for stable diffs.

    - Keyframes are stable-sorted by time within each track (flattening
      output is unchanged by this)
    - Track order is kept: it decides ties between tracks
    - Deterministic key ordering is applied on dump
    """
    out = copy.deepcopy(doc)
    for tr in out.get("tracks") or []:
        if isinstance(tr, dict) and isinstance(tr.get("keyframes"), list):
            tr["keyframes"].sort(key=lambda k: k.get("time_ms", 0) if isinstance(k, dict) else 0)
    return out


def sha256_canonical(doc: Dict[str, Any]) -> str:
    """Compute SHA-256 of canonical JSON string (sorted keys, compact)."""
    s = json.dumps(doc, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(s.encode("utf-8")).hexdigest()
