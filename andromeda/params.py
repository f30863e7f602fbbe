from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from andromeda.numeric import NumericRange


KIND_NUMBER = "number"
KIND_BOOL = "bool"
KIND_WAVEFORM = "waveform"

WAVEFORMS = ("sine", "triangle", "saw", "square")


@dataclass(frozen=True)
class ParamSpec:
    path: str
    kind: str
    range: Optional[NumericRange] = None
    cc: Optional[int] = None


_UNIT = NumericRange(0.0, 1.0, 0.01)

# Known synth parameters. Paths stay open string keys: anything not listed
# here is treated as an unranged number.
PARAMS: Dict[str, ParamSpec] = {
    spec.path: spec
    for spec in (
        ParamSpec("filter.cutoff", KIND_NUMBER, NumericRange(20.0, 20000.0, 1.0), cc=74),
        ParamSpec("filter.resonance", KIND_NUMBER, _UNIT, cc=71),
        ParamSpec("filter.env_amount", KIND_NUMBER, _UNIT, cc=75),
        ParamSpec("filter.drive", KIND_NUMBER, _UNIT, cc=76),
        ParamSpec("mixer.noise", KIND_NUMBER, _UNIT, cc=77),
        ParamSpec("mixer.sub", KIND_NUMBER, _UNIT, cc=78),
        ParamSpec("mixer.master", KIND_NUMBER, _UNIT, cc=7),
        ParamSpec("oscillator.waveform", KIND_WAVEFORM, cc=70),
        ParamSpec("oscillator.tune", KIND_NUMBER, NumericRange(-24.0, 24.0, 0.1), cc=85),
        ParamSpec("oscillator.level", KIND_NUMBER, _UNIT, cc=86),
        ParamSpec("oscillator.sync", KIND_BOOL, cc=87),
        ParamSpec("global.mono", KIND_BOOL, cc=88),
        ParamSpec("global.glide", KIND_NUMBER, _UNIT, cc=5),
        ParamSpec("global.clip_amount", KIND_NUMBER, NumericRange(0.05, 1.0, 0.01), cc=89),
    )
}

# Paths offered for automation tracks, in picker order
AUTOMATION_PATHS: List[str] = [
    "filter.cutoff",
    "filter.resonance",
    "mixer.master",
    "oscillator.waveform",
    "oscillator.tune",
    "oscillator.level",
    "oscillator.sync",
    "global.mono",
    "global.clip_amount",
]


def param_spec(path: str) -> Optional[ParamSpec]:
    return PARAMS.get(path)


def kind_of(path: str) -> str:
    spec = PARAMS.get(path)
    return spec.kind if spec is not None else KIND_NUMBER


def default_value_for(path: str) -> Any:
    """Neutral value for a freshly authored or re-targeted keyframe."""
    kind = kind_of(path)
    if kind == KIND_WAVEFORM:
        return "sine"
    if kind == KIND_BOOL:
        return False
    return 0


def value_matches_kind(path: str, value: Any) -> bool:
    kind = kind_of(path)
    if kind == KIND_BOOL:
        return isinstance(value, bool)
    if kind == KIND_WAVEFORM:
        return isinstance(value, str) and value in WAVEFORMS
    if PARAMS.get(path) is None:
        return isinstance(value, (int, float, str, bool))
    # bool is an int subclass; never accept it as a number
    return isinstance(value, (int, float)) and not isinstance(value, bool)
