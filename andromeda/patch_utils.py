from __future__ import annotations

import copy
from typing import Any, Dict, List

import jsonpatch

from andromeda.codec import InvalidTimelineDocument, decode_timeline, encode_timeline
from andromeda.timeline import Timeline


def apply_patch(doc: Dict[str, Any], ops: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Apply an RFC 6902 JSON Patch ops array to a deep copy of doc."""
    base = copy.deepcopy(doc)
    patch = jsonpatch.JsonPatch(ops)
    return patch.apply(base, in_place=False)


def apply_timeline_patch(timeline: Timeline, ops: List[Dict[str, Any]]) -> Timeline:
    """Patch the encoded timeline and decode the result.

    Paths address the export format, e.g. /tracks/0/keyframes/1/value.
    Any failure (bad op, missing path, invalid result) raises
    InvalidTimelineDocument and leaves the input untouched.
    """
    if not isinstance(ops, list):
        raise InvalidTimelineDocument(["/: patch must be an array of operations"])
    try:
        patched = apply_patch(encode_timeline(timeline), ops)
    except (jsonpatch.JsonPatchException, jsonpatch.JsonPointerException) as e:
        raise InvalidTimelineDocument([f"/: patch failed ({e})"]) from e
    except (TypeError, ValueError, KeyError, IndexError) as e:
        raise InvalidTimelineDocument([f"/: malformed patch ({e})"]) from e
    return decode_timeline(patched)
