#!/usr/bin/env python3
"""
GPS Quest - Location Based AR Quest
Entry Point Module
Checks dependencies, parses arguments and replays a recorded GPS track
against a quest file without a GUI.
"""
import argparse
import sys
import time
import traceback
from pathlib import Path
from typing import Optional, List


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="GPS Quest - Location Based AR Quest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python . quest.json --track walk.json          # Replay a recorded walk
  python . --check-deps                          # Check dependencies only
  python . quest.json --track walk.json --debug  # Replay with debug output
  python . quest.json --track walk.json --log-dir ./logs
        """
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version="GPS Quest 1.0.0"
    )
    parser.add_argument(
        "quest",
        nargs="?",
        help="Quest file with the ordered list of waypoints"
    )
    parser.add_argument(
        "--track", "-t",
        type=str,
        help="Recorded GPS track (JSON list of readings or {'points': [...]})"
    )
    parser.add_argument(
        "--settings", "-s",
        type=str,
        help="INI file with quest settings"
    )
    parser.add_argument(
        "--check-deps", "-c",
        action="store_true",
        help="Check dependencies and exit"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        help="Custom directory for log files"
    )
    return parser.parse_args(argv)


# display name -> (import name, Qt submodules that must load, purpose)
REQUIRED_PACKAGES = {
    'PySide6': ('PySide6', ('QtCore',), 'signals, timers and settings storage'),
}


def _probe(import_name: str, submodules) -> str:
    """Import a package and its submodules, returning its version string."""
    module = __import__(import_name)
    for submodule in submodules:
        __import__(f"{import_name}.{submodule}")
    return getattr(module, '__version__', 'unknown')


def check_dependencies() -> bool:
    """Report each required package and return whether all of them import."""
    print(f"Python {sys.version.split()[0]} at {sys.executable}\n")
    missing = []
    for display_name, (import_name, submodules, purpose) in REQUIRED_PACKAGES.items():
        try:
            version = _probe(import_name, submodules)
        except ImportError as e:
            missing.append(display_name)
            print(f"ERROR {display_name} ({purpose}) could not be imported: {e}")
        else:
            print(f"OK {display_name} {version} ({purpose})")
    if missing:
        print(f"\nMissing required dependencies: {', '.join(missing)}")
        print(f"Install them with: {sys.executable} -m pip install {' '.join(missing)}")
        return False
    return True


def load_session_settings(path: Optional[str]):
    """Read quest settings from an INI file, or use the defaults."""
    from config_validation import QuestSettings, load_settings
    if not path:
        return QuestSettings()
    from PySide6.QtCore import QSettings
    return load_settings(QSettings(str(path), QSettings.Format.IniFormat))


def replay(quest_path: str, track_path: str, settings_path: Optional[str] = None) -> int:
    """Replay ``track_path`` one reading per tick and report progress."""
    from gps_provider import SimulatedGPSProvider
    from quest_controller import QuestStatus
    from quest_session import QuestSession

    session = QuestSession(load_session_settings(settings_path))
    provider = SimulatedGPSProvider.from_feed(Path(track_path), interval_ms=None)
    session.set_gps_provider(provider)
    session.load_waypoints(Path(quest_path))
    session.controller.arrived_at_place.connect(
        lambda waypoint: print(f"Arrived at {waypoint.name}")
    )
    session.controller.all_places_visited.connect(lambda: print("All waypoints visited!"))

    session.start(use_timer=False)
    delta_time = max(session.settings.gps_update_interval_s, 0.001)
    session.tick(delta_time)
    while provider.is_active:
        provider.manual_step()
        session.tick(delta_time)
    summary = session.controller.progress_summary()
    session.cleanup()

    print(f"\nQuest status: {summary['status']}")
    print(f"Visited {summary['visited']} of {summary['total']} waypoints")
    for name in summary['visited_names']:
        print(f"   - {name}")
    return 0 if session.controller.status is QuestStatus.SUCCEEDED else 2


def main(argv: Optional[List[str]] = None):
    """Main entry point for GPS Quest."""
    try:
        args = parse_arguments(argv)
        print("\n" + "="*60)
        print("GPS Quest - Location Based AR Quest")
        print("="*60 + "\n")
        print("Checking dependencies...")
        deps_ok = check_dependencies()
        if args.check_deps:
            if deps_ok:
                print("\nAll dependencies are satisfied!")
                return 0
            else:
                print("\nSome dependencies are missing!")
                return 1
        if not deps_ok:
            print("\nCannot start GPS Quest due to missing dependencies.")
            return 1
        if not args.quest or not args.track:
            print("\nA quest file and --track are required to run a replay.")
            return 1

        from logger import setup_logger
        logger = setup_logger(log_dir=Path(args.log_dir) if args.log_dir else None)
        if args.debug:
            logger.set_log_level("DEBUG")
            print("Debug logging enabled\n")
        return replay(args.quest, args.track, args.settings)
    except KeyboardInterrupt:
        print("\n\nReplay interrupted by user")
        return 130
    except Exception as e:
        print(f"\nError running GPS Quest:")
        print(f"   {type(e).__name__}: {e}")
        if args.debug if 'args' in locals() else False:
            print(f"\nDebug traceback:")
            traceback.print_exc()
        else:
            print(f"\nRun with --debug for detailed error information")
        return 1


if __name__ == "__main__":
    start_time = time.time()
    exit_code = main()
    runtime = time.time() - start_time
    print(f"\nGPS Quest ran for {runtime:.2f} seconds")
    sys.exit(exit_code)
