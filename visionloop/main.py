#!/usr/bin/env python3
"""
Main entry point for visionloop.

Usage:
    # Replay a recording once per CSV row (controls the REAL mouse!)
    python -m visionloop.main play recording.json --csv data.csv

    # Replay inside a Playwright browser instead
    python -m visionloop.main play recording.json --browser https://example.com

    # Click "Allow"/"Keep" whenever they appear, for up to 7 minutes of quiet
    python -m visionloop.main wait-click Allow Keep --timeout 420

    # List text recognized on screen
    python -m visionloop.main scan
"""
import argparse
import asyncio
import logging
from pathlib import Path

from visionloop.config import ConditionalTimeoutPolicy, config


async def _make_backend(args):
    if getattr(args, "browser", None):
        from visionloop.backends.browser import BrowserBackend
        backend = BrowserBackend(
            viewport_width=config.browser_viewport[0],
            viewport_height=config.browser_viewport[1],
            headless=config.browser_headless,
        )
        await backend.init()
        await backend.navigate(args.browser)
        return backend

    from visionloop.backends.desktop import DesktopBackend
    return DesktopBackend(monitor=config.monitor, safe_mode=getattr(args, "safe", False))


async def run_play(args):
    """Play a recording over CSV rows."""
    from visionloop.history import RunHistoryDB
    from visionloop.playback import PlaybackEngine, PlaybackOptions, load_csv, load_recording
    from visionloop.playback.engine import run_with_kill_switch

    print("=" * 60)
    print("▶️  VISIONLOOP: Playback")
    print("=" * 60)

    recording = load_recording(Path(args.recording))
    csv = load_csv(Path(args.csv)) if args.csv else None
    if not recording.name:
        recording.name = Path(args.recording).stem

    print(f"Recording: {recording.name} ({len(recording.steps)} steps, loop from {recording.loop_start_index})")
    if csv is not None:
        print(f"CSV: {len(csv.rows)} rows, columns {csv.headers}")
    print(f"Timeout policy: {args.policy}")

    if not args.safe and not args.browser:
        print("\n⚠️  WARNING: This will control your REAL mouse!")
        print("   Press Cmd/Ctrl+Shift+Escape at any time to STOP")
        print("   Press Cmd/Ctrl+Shift+P to PAUSE/RESUME")

    config.ensure_dirs()
    backend = await _make_backend(args)
    engine = PlaybackEngine(backend, config=config, timeout_policy=ConditionalTimeoutPolicy(args.policy))

    def on_row_complete(row_index: int, success: bool):
        print(f"  Row {row_index + 1}: {'✅' if success else '❌'}")

    options = PlaybackOptions(
        csv=csv,
        on_row_complete=on_row_complete,
        auto_detection_terms=args.auto_detect or None,
    )

    try:
        report = await run_with_kill_switch(engine, recording, options)
    finally:
        await backend.close()

    print(f"\n{'✅' if report.success else '⏹️' if report.status == 'stopped' else '❌'} {report.status}")
    print(f"   Rows completed: {report.completed_rows}/{report.total_rows}")
    if report.error:
        print(f"   Error: {report.error}")

    db = RunHistoryDB(config.db_path)
    await db.connect()
    try:
        run_id = await db.save_report(report, {"csv": args.csv, "policy": args.policy})
        print(f"   Saved as run #{run_id} in {config.db_path}")
    finally:
        await db.close()


async def run_scan(args):
    """Recognize the current screen once and print what was found."""
    from visionloop.vision import initialize_recognizer

    backend = await _make_backend(args)
    try:
        print("Initializing OCR...")
        recognizer = await initialize_recognizer(config.vision)
        screenshot = await backend.capture()
        results = await asyncio.to_thread(recognizer.recognize, screenshot, args.confidence)
    finally:
        await backend.close()

    print(f"\n🔍 {len(results)} text regions ({recognizer.last_duration_ms:.0f}ms):")
    for r in results:
        print(f"   {r.confidence:5.1f}  ({r.bounds.center_x:.0f}, {r.bounds.center_y:.0f})  {r.text}")


async def run_wait_click(args):
    """Conditional click on the real screen until the rolling timeout expires."""
    from visionloop.cancellation import CancelToken
    from visionloop.utils.overlay import KillSwitch
    from visionloop.vision import ConditionalConfig, ConditionalPoller, initialize_recognizer

    token = CancelToken()
    loop = asyncio.get_running_loop()
    switch = KillSwitch(on_kill=lambda: loop.call_soon_threadsafe(token.cancel, "kill switch"))

    backend = await _make_backend(args)
    try:
        recognizer = await initialize_recognizer(config.vision)
        poller = ConditionalPoller(backend, recognizer, config.vision, screenshot_dir=config.screenshot_dir)

        print(f"👀 Waiting for {args.terms} (Cmd/Ctrl+Shift+Escape to stop)")
        switch.start()
        result = await poller.wait_and_click(
            ConditionalConfig(
                search_terms=args.terms,
                timeout_seconds=args.timeout,
                poll_interval_ms=args.interval,
                confidence_threshold=args.confidence,
                success_text=args.success_text,
            ),
            cancel_token=token,
        )
    finally:
        switch.stop()
        await backend.close()

    print(f"\nClicked {result.buttons_clicked} ({', '.join(result.clicked_texts) or '-'})")
    print(f"   State: {result.state}, {result.iterations} ticks, {result.duration / 1000:.1f}s")


async def run_history(args):
    """Show recent playback runs."""
    from visionloop.history import RunHistoryDB

    db_path = Path(args.db) if args.db else config.db_path
    if not db_path.exists():
        print(f"❌ Database not found: {db_path}")
        return

    db = RunHistoryDB(db_path)
    await db.connect()
    try:
        stats = await db.get_stats()
        runs = await db.get_runs(limit=args.limit)
    finally:
        await db.close()

    print(f"📊 {stats['total_runs']} runs: {stats['completed']} completed, "
          f"{stats['failed']} failed, {stats['stopped']} stopped")
    for run in runs:
        print(f"   #{run.id:<4} {run.status:<9} {run.completed_rows}/{run.total_rows} rows  "
              f"{run.duration_seconds:6.1f}s  {run.recording_name}")
        if run.error:
            print(f"         {run.error}")


def main():
    parser = argparse.ArgumentParser(description="VisionLoop: OCR-driven clicking and CSV playback")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--debug-screenshots", action="store_true", help="Save every polled screenshot")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Play command
    play_parser = subparsers.add_parser("play", help="Play a recording over CSV rows")
    play_parser.add_argument("recording", type=str, help="Recording JSON file")
    play_parser.add_argument("--csv", type=str, help="CSV data file")
    play_parser.add_argument("--browser", type=str, help="Run in a Playwright browser starting at this URL")
    play_parser.add_argument("--safe", action="store_true", help="Log actions instead of performing them")
    play_parser.add_argument(
        "--policy", choices=[p.value for p in ConditionalTimeoutPolicy],
        default=config.conditional_timeout_policy.value,
        help="What a conditional click that found nothing does to its row",
    )
    play_parser.add_argument("--auto-detect", nargs="*", help="Click these terms if visible after every step")

    # Scan command
    scan_parser = subparsers.add_parser("scan", help="Recognize text on screen once")
    scan_parser.add_argument("--confidence", type=float, default=None, help="Minimum confidence (0-100)")

    # Wait-click command
    wait_parser = subparsers.add_parser("wait-click", help="Click terms whenever they appear")
    wait_parser.add_argument("terms", nargs="+", help="Text to look for")
    wait_parser.add_argument("--timeout", type=float, default=420.0, help="Seconds without a click before stopping")
    wait_parser.add_argument("--interval", type=float, default=500.0, help="Poll interval in ms")
    wait_parser.add_argument("--confidence", type=float, default=None, help="Minimum confidence (0-100)")
    wait_parser.add_argument("--success-text", type=str, default=None, help="Stop once this text is visible")

    # History command
    history_parser = subparsers.add_parser("history", help="Show recent playback runs")
    history_parser.add_argument("--limit", type=int, default=20, help="Number of runs")
    history_parser.add_argument("--db", type=str, help="Database path")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.debug_screenshots:
        config.vision.debug_mode = True

    if args.command == "play":
        asyncio.run(run_play(args))
    elif args.command == "scan":
        asyncio.run(run_scan(args))
    elif args.command == "wait-click":
        asyncio.run(run_wait_click(args))
    elif args.command == "history":
        asyncio.run(run_history(args))


if __name__ == "__main__":
    main()
