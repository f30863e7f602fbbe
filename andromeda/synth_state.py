from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from andromeda.flatten import AutomationEvent


@dataclass(frozen=True)
class EnvelopeState:
    attack: float = 0.02
    decay: float = 0.25
    sustain: float = 0.7
    release: float = 0.4


@dataclass(frozen=True)
class OscillatorState:
    waveform: str = "saw"
    tune: float = 0.0
    level: float = 0.7
    sync: bool = True


@dataclass(frozen=True)
class FilterState:
    cutoff: float = 1400.0
    resonance: float = 0.35
    env_amount: float = 0.55
    drive: float = 0.2


@dataclass(frozen=True)
class MixerState:
    noise: float = 0.12
    sub: float = 0.3
    master: float = 0.72


@dataclass(frozen=True)
class GlobalState:
    mono: bool = False
    glide: float = 0.05
    clip_amount: float = 0.35


@dataclass(frozen=True)
class SynthState:
    """Parameter snapshot the external renderer works from.

    Automation paths are "<section>.<field>", e.g. filter.cutoff.
    """

    envelope: EnvelopeState = field(default_factory=EnvelopeState)
    oscillator: OscillatorState = field(default_factory=OscillatorState)
    filter: FilterState = field(default_factory=FilterState)
    mixer: MixerState = field(default_factory=MixerState)
    global_: GlobalState = field(default_factory=GlobalState)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "envelope": dataclasses.asdict(self.envelope),
            "oscillator": dataclasses.asdict(self.oscillator),
            "filter": dataclasses.asdict(self.filter),
            "mixer": dataclasses.asdict(self.mixer),
            "global": dataclasses.asdict(self.global_),
        }

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "SynthState":
        """Build from a (possibly partial) dict; unknown keys are dropped."""
        base = cls()
        sections = {}
        for name, attr in _SECTIONS.items():
            current = getattr(base, attr)
            raw = obj.get(name) if isinstance(obj, dict) else None
            if isinstance(raw, dict):
                known = {f.name for f in dataclasses.fields(current)}
                current = dataclasses.replace(current, **{k: v for k, v in raw.items() if k in known})
            sections[attr] = current
        return cls(**sections)


# JSON section name -> attribute ("global" is a keyword)
_SECTIONS = {
    "envelope": "envelope",
    "oscillator": "oscillator",
    "filter": "filter",
    "mixer": "mixer",
    "global": "global_",
}


def _coerce(current: Any, value: Any) -> Optional[Any]:
    """Value converted to the field's type, or None when it does not fit."""
    if isinstance(current, bool):
        return value if isinstance(value, bool) else None
    if isinstance(current, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)
    if isinstance(current, str):
        return value if isinstance(value, str) else None
    return None


def apply_event(state: SynthState, event: AutomationEvent) -> SynthState:
    """Return state with the event's value written to its path.

    Unknown paths and values of the wrong type leave the state unchanged.
    """
    section_name, _, field_name = event.path.partition(".")
    attr = _SECTIONS.get(section_name)
    if attr is None or not field_name:
        return state
    section = getattr(state, attr)
    if field_name not in {f.name for f in dataclasses.fields(section)}:
        return state
    value = _coerce(getattr(section, field_name), event.value)
    if value is None:
        return state
    return dataclasses.replace(state, **{attr: dataclasses.replace(section, **{field_name: value})})


def state_at(events: Iterable[AutomationEvent], time_ms: int, base: Optional[SynthState] = None) -> SynthState:
    """Fold every event with time_ms <= t (in time order) onto base."""
    state = base or SynthState()
    for ev in sorted(events, key=lambda e: e.time_ms):
        if ev.time_ms > time_ms:
            break
        state = apply_event(state, ev)
    return state
