from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, List, Optional

from andromeda.codec import (
    InvalidTimelineDocument,
    dumps_timeline,
    encode_timeline,
    load_timeline,
    loads_events,
    save_timeline,
)
from andromeda.flatten import events_to_json, flatten_timeline, timeline_from_events
from andromeda.patch_utils import apply_timeline_patch
from andromeda.render import DEFAULT_RAMP_RESOLUTION_MS, DEFAULT_SAMPLE_RATE, MidiFileRenderer, RenderError, render_timeline
from andromeda.scheduler import POLL_DEFAULT_MS, PeriodicTask, clamp_poll_interval
from andromeda.synth_state import state_at
from andromeda.timeline import DEFAULT_DURATION_MS, DurationBounds, default_timeline, new_timeline, set_duration
from andromeda.validator import canonicalize, sha256_canonical, unknown_paths


EXIT_OK = 0
EXIT_INVALID = 1
EXIT_IO = 2


def _read(path: str):
    """Load a timeline; prints the problem and returns None on failure."""
    try:
        return load_timeline(path)
    except OSError as e:
        print(f"error: failed to read {path}: {e}", file=sys.stderr)
    except InvalidTimelineDocument as e:
        print(f"invalid timeline {path}:")
        for err in e.errors:
            print(f" - {err}")
    return None


def _read_status(path: str) -> int:
    return EXIT_IO if not os.path.exists(path) else EXIT_INVALID


def cmd_new(args: argparse.Namespace) -> int:
    if os.path.exists(args.path) and not args.force:
        print(f"error: {args.path} exists (use --force to overwrite)", file=sys.stderr)
        return EXIT_IO
    tl = new_timeline() if args.blank else default_timeline()
    if args.duration is not None:
        tl = set_duration(tl, args.duration, DurationBounds())
    save_timeline(args.path, tl)
    print(f"wrote {args.path} (duration_ms={tl.duration_ms}, tracks={len(tl.tracks)})")
    return EXIT_OK


def cmd_validate(args: argparse.Namespace) -> int:
    tl = _read(args.path)
    if tl is None:
        return _read_status(args.path)
    doc = canonicalize(encode_timeline(tl))
    for p in unknown_paths(doc):
        print(f"warning: unknown parameter path '{p}'")
    if args.print_hash:
        print(sha256_canonical(doc))
    if args.write:
        data = json.dumps(doc, sort_keys=True, indent=2, ensure_ascii=False)
        if not data.endswith("\n"):
            data += "\n"
        with open(args.path, "w", encoding="utf-8") as f:
            f.write(data)
        print(f"wrote canonical form to {args.path}")
    else:
        print("ok: valid timeline")
    return EXIT_OK


def cmd_flatten(args: argparse.Namespace) -> int:
    tl = _read(args.path)
    if tl is None:
        return _read_status(args.path)
    events = flatten_timeline(tl)
    if args.at is not None:
        print(json.dumps(state_at(events, int(args.at)).to_dict(), indent=2))
    else:
        print(json.dumps(events_to_json(events), indent=2))
    return EXIT_OK


def _load_ops(arg: str) -> Any:
    if arg.startswith("@"):
        with open(arg[1:], "r", encoding="utf-8") as f:
            return json.load(f)
    return json.loads(arg)


def cmd_patch(args: argparse.Namespace) -> int:
    tl = _read(args.path)
    if tl is None:
        return _read_status(args.path)
    try:
        ops = _load_ops(args.ops)
    except (OSError, ValueError) as e:
        print(f"error: failed to read ops: {e}", file=sys.stderr)
        return EXIT_IO
    try:
        patched = apply_timeline_patch(tl, ops)
    except InvalidTimelineDocument as e:
        print("patch rejected:")
        for err in e.errors:
            print(f" - {err}")
        return EXIT_INVALID
    if args.dry_run:
        print(dumps_timeline(patched))
    else:
        save_timeline(args.path, patched)
        print(f"patched {args.path}")
    return EXIT_OK


def cmd_import_events(args: argparse.Namespace) -> int:
    duration = DurationBounds().clamp(args.duration)
    try:
        with open(args.events, "r", encoding="utf-8") as f:
            payload = f.read()
    except OSError as e:
        print(f"error: failed to read {args.events}: {e}", file=sys.stderr)
        return EXIT_IO
    try:
        events = loads_events(payload, duration_ms=duration)
    except InvalidTimelineDocument as e:
        print(f"invalid events {args.events}:")
        for err in e.errors:
            print(f" - {err}")
        return EXIT_INVALID
    tl = timeline_from_events(events, duration)
    save_timeline(args.out, tl)
    print(f"wrote {args.out} ({len(events)} events, tracks={len(tl.tracks)})")
    return EXIT_OK


def cmd_render(args: argparse.Namespace) -> int:
    tl = _read(args.path)
    if tl is None:
        return _read_status(args.path)
    renderer = MidiFileRenderer(out_dir=args.out_dir, channel=args.channel, ramp_resolution_ms=args.ramp_ms)
    try:
        locator = render_timeline(tl, renderer, sample_rate=args.sample_rate)
    except RenderError as e:
        print(f"[render] failed: {e}", file=sys.stderr)
        return EXIT_IO
    for p in renderer.skipped_paths:
        print(f"[render] no controller for '{p}', skipped")
    print(f"[render] wrote {locator}")
    return EXIT_OK


async def watch(path: str, interval_ms: int, seconds: Optional[float] = None) -> int:
    """Poll path and print its flattened events whenever the content changes."""
    last: dict = {"mtime": None, "hash": None}

    def poll() -> None:
        try:
            m = os.path.getmtime(path)
        except OSError:
            m = None
        if m == last["mtime"]:
            return
        last["mtime"] = m
        try:
            tl = load_timeline(path)
        except (OSError, InvalidTimelineDocument) as e:
            print(f"[watch] {path}: {e}", flush=True)
            return
        h = sha256_canonical(encode_timeline(tl))
        if h == last["hash"]:
            return
        last["hash"] = h
        events = flatten_timeline(tl)
        print(f"[watch] {path}: {len(events)} events", flush=True)
        print(json.dumps(events_to_json(events)), flush=True)

    task = PeriodicTask(poll, clamp_poll_interval(interval_ms) / 1000.0, name="watch")
    task.start()
    try:
        if seconds is None:
            await asyncio.Future()
        else:
            await asyncio.sleep(seconds)
    finally:
        task.stop()
    return EXIT_OK


def cmd_watch(args: argparse.Namespace) -> int:
    try:
        return asyncio.run(watch(args.path, args.interval_ms, args.seconds))
    except KeyboardInterrupt:
        print("[watch] stopped")
        return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="andromeda", description="Synth parameter automation timelines")
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_new = sub.add_parser("new", help="Write a starter timeline")
    p_new.add_argument("path")
    p_new.add_argument("--duration", type=int, help=f"Duration in ms (default {DEFAULT_DURATION_MS})")
    p_new.add_argument("--blank", action="store_true", help="One empty track instead of the cutoff sweep")
    p_new.add_argument("--force", action="store_true")
    p_new.set_defaults(func=cmd_new)

    p_val = sub.add_parser("validate", help="Validate and canonicalize a timeline JSON")
    p_val.add_argument("path")
    p_val.add_argument("--write", "-w", action="store_true", help="Rewrite file with canonical formatting")
    p_val.add_argument("--print-hash", action="store_true", help="Print SHA-256 of canonical JSON")
    p_val.set_defaults(func=cmd_validate)

    p_flat = sub.add_parser("flatten", help="Print the time-ordered event stream")
    p_flat.add_argument("path")
    p_flat.add_argument("--at", type=int, help="Print the synth state at this time (ms) instead")
    p_flat.set_defaults(func=cmd_flatten)

    p_patch = sub.add_parser("patch", help="Apply an RFC 6902 patch to a timeline file")
    p_patch.add_argument("path")
    p_patch.add_argument("--ops", required=True, help="JSON array, or @file.json")
    p_patch.add_argument("--dry-run", action="store_true", help="Print the result instead of writing it")
    p_patch.set_defaults(func=cmd_patch)

    p_events = sub.add_parser("import-events", help="Build a timeline from a JSON array of automation events")
    p_events.add_argument("events")
    p_events.add_argument("out")
    p_events.add_argument("--duration", type=int, default=DEFAULT_DURATION_MS, help="Timeline duration in ms")
    p_events.set_defaults(func=cmd_import_events)

    p_render = sub.add_parser("render", help="Render the automation to a MIDI file")
    p_render.add_argument("path")
    p_render.add_argument("--out-dir", default="renders")
    p_render.add_argument("--sample-rate", type=int, default=DEFAULT_SAMPLE_RATE)
    p_render.add_argument("--channel", type=int, default=0)
    p_render.add_argument("--ramp-ms", type=int, default=DEFAULT_RAMP_RESOLUTION_MS)
    p_render.set_defaults(func=cmd_render)

    p_watch = sub.add_parser("watch", help="Print the event stream whenever the file changes")
    p_watch.add_argument("path")
    p_watch.add_argument("--interval-ms", type=int, default=POLL_DEFAULT_MS)
    p_watch.add_argument("--seconds", type=float, help="Stop after this many seconds")
    p_watch.set_defaults(func=cmd_watch)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
