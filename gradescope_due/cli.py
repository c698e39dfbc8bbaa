"""Command-line interface for gradescope-due."""

import argparse
import json
import os
import sys
from typing import List, Optional

from gradescope_due.main import open_browser, open_store
from gradescope_due.refresher import RefreshConfig, Refresher, RefreshInProgressError
from gradescope_due.processor.merge_store import MergeStore
from gradescope_due.utils.database import PersistenceError
from gradescope_due.utils.logger import setup_logger


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog='gradescope-due',
        description='Gradescope due-date tracker CLI'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('refresh', help='Scrape all courses now')

    show_parser = subparsers.add_parser('show', help='Show stored courses and the last refresh')
    show_parser.add_argument('--json', action='store_true', help='Dump the full snapshot as JSON')

    subparsers.add_parser('clear', help='Forget stored courses, assignments and diagnostics')

    settings_parser = subparsers.add_parser('settings', help='Show or change display settings')
    settings_parser.add_argument('--window-days', type=int, help='Days ahead to show (1-365)')
    settings_parser.add_argument('--term', help="Term filter, e.g. 'Fall 2025', or ALL")
    settings_parser.add_argument('--show-past', dest='show_past', action='store_true', default=None)
    settings_parser.add_argument('--hide-past', dest='show_past', action='store_false')
    settings_parser.add_argument('--show-submitted', dest='show_submitted', action='store_true', default=None)
    settings_parser.add_argument('--hide-submitted', dest='show_submitted', action='store_false')

    serve_parser = subparsers.add_parser('serve', help='Run the HTTP API')
    serve_parser.add_argument('--host', default='127.0.0.1')
    serve_parser.add_argument('--port', type=int, default=8000)

    return parser


def _open_store(config: Optional[RefreshConfig] = None) -> MergeStore:
    return open_store(config or RefreshConfig.from_env())


def handle_refresh() -> int:
    """Handle refresh command.

    Returns:
        Exit code.
    """
    setup_logger(log_file=os.getenv("LOG_FILE"))
    config = RefreshConfig.from_env()
    store = _open_store(config)
    try:
        with open_browser(config) as browser:
            summary = Refresher(store, browser, config).refresh_all()
    except RefreshInProgressError as e:
        print(f"Error: {e}")
        return 1
    except PersistenceError as e:
        print(f"Error: could not update the store: {e}")
        return 1
    finally:
        store.db.close()

    if summary.discovery_error:
        print(f"Course discovery failed: {summary.discovery_error}")
        return 1
    for result in summary.results:
        if result.error:
            print(f"  {result.id} ({result.name}): error={result.error}")
        else:
            print(
                f"  {result.id} ({result.name}): items={result.items_found} "
                f"due={result.parsed_due_count} not_authorized={result.not_authorized}"
            )
    print(f"Refreshed {len(summary.discovered_course_ids)} courses")
    return 0


def format_debug(snapshot: dict) -> List[str]:
    """Render the stored snapshot as human-readable diagnostic lines."""
    courses = snapshot.get('courses') or {}
    assignments = snapshot.get('assignments') or {}
    debug = snapshot.get('debug') or {}

    out = [
        f"Storage: {round((snapshot.get('bytes_in_use') or 0) / 1024)} KB"
        f" | Courses: {len(courses)} | Items: {len(assignments)}"
    ]
    for course in courses.values():
        term = f" [{course['term']}]" if course.get('term') else ""
        access = course.get('access') or 'unscraped'
        out.append(f"  {course['id']} {course.get('name', '?')}{term} ({access})")

    if debug.get('last_refresh_at'):
        out.append(f"Last refresh: {debug['last_refresh_at']}")
    if debug.get('discovery_error'):
        out.append(f"Discovery error: {debug['discovery_error']}")
    for result in debug.get('results', []):
        if result.get('error'):
            bits = f"error={result['error']}"
        else:
            bits = (
                f"itemsFound={result.get('items_found', 0)} "
                f"dueFields={result.get('parsed_due_count', 0)} "
                f"notAuthorized={result.get('not_authorized', False)}"
            )
        out.append(f"  - {result['id']} ({result.get('name') or '?'}): {bits}")
    if debug.get('discovered_terms'):
        out.append(f"Discovered terms: {', '.join(debug['discovered_terms'])}")
    return out


def handle_show(as_json: bool = False) -> int:
    """Handle show command."""
    store = _open_store()
    snapshot = store.snapshot()
    store.db.close()

    if as_json:
        print(json.dumps(snapshot, indent=2))
    else:
        print("\n".join(format_debug(snapshot)))
    return 0


def handle_clear() -> int:
    """Handle clear command."""
    store = _open_store()
    store.clear_all()
    store.db.close()
    print("Cleared stored courses, assignments and diagnostics")
    return 0


def handle_settings(
    window_days: Optional[int] = None,
    term: Optional[str] = None,
    show_past: Optional[bool] = None,
    show_submitted: Optional[bool] = None,
) -> int:
    """Handle settings command. With no options, prints current settings."""
    store = _open_store()
    changes = {
        key: value
        for key, value in (
            ('window_days', window_days),
            ('term_filter', term),
            ('show_past', show_past),
            ('show_submitted', show_submitted),
        )
        if value is not None
    }

    try:
        settings = store.update_settings(changes) if changes else store.get_settings()
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    finally:
        store.db.close()

    for key, value in settings.items():
        print(f"{key}: {value}")
    return 0


def handle_serve(host: str, port: int) -> int:
    """Handle serve command."""
    import uvicorn

    setup_logger(log_file=os.getenv("LOG_FILE"))
    uvicorn.run("gradescope_due.api.main:app", host=host, port=port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == 'refresh':
        return handle_refresh()
    if args.command == 'show':
        return handle_show(as_json=args.json)
    if args.command == 'clear':
        return handle_clear()
    if args.command == 'settings':
        return handle_settings(
            window_days=args.window_days,
            term=args.term,
            show_past=args.show_past,
            show_submitted=args.show_submitted,
        )
    if args.command == 'serve':
        return handle_serve(args.host, args.port)

    parser.print_help()
    return 1


if __name__ == '__main__':
    sys.exit(main())
