# companion_lifecycle/cli/lifecycle.py
"""
CLI commands for the conversation retention lifecycle.

Usage:
    python -m companion_lifecycle.cli.lifecycle run
    python -m companion_lifecycle.cli.lifecycle status
    python -m companion_lifecycle.cli.lifecycle erase <request_id> --subject <subject_id>
    python -m companion_lifecycle.cli.lifecycle reschedule <subject_id> --months 24
    python -m companion_lifecycle.cli.lifecycle classify "I fell in the kitchen" --sentiment neg
    python -m companion_lifecycle.cli.lifecycle redact "call me on 07700 900123"
"""

import argparse
import json
import sys

from dotenv import load_dotenv

load_dotenv()


def get_db_session():
    """Get a database session."""
    from companion_lifecycle.database import SessionLocal

    return SessionLocal()


def _configure_logging(args):
    from companion_lifecycle.config import get_settings
    from companion_lifecycle.logging_config import configure_logging

    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON and not args.plain, level=settings.LOG_LEVEL)


def cmd_run(args):
    """Run one lifecycle pass."""
    from companion_lifecycle.services.lifecycle import build_engine

    _configure_logging(args)
    db = get_db_session()
    try:
        engine = build_engine(db)
        result = engine.run_lifecycle(trigger=args.trigger)

        print(f"\n=== Lifecycle Pass {result.run_id} ({result.status.value}) ===\n")
        print(f"Archived: {result.archived}")
        print(f"Anonymized: {result.anonymized}")
        print(f"Deleted: {result.deleted}")
        print(f"Protected by hold: {result.protected_by_hold}")
        print(f"Warnings sent: {result.notified}")
        print(f"Warnings failed: {result.notifications_failed}")

        if result.errors:
            print("\nErrors:")
            for error in result.errors:
                print(f"  - {error}")

        if not result.success and not result.skipped:
            sys.exit(1)
    finally:
        db.close()


def cmd_status(args):
    """Show pending lifecycle work and the last pass."""
    from companion_lifecycle.services.lifecycle import build_engine

    db = get_db_session()
    try:
        stats = build_engine(db).status()

        if args.json:
            print(json.dumps(stats, indent=2, default=str))
            return

        print("\n=== Lifecycle Status ===\n")
        print("Totals:")
        for key, count in stats["totals"].items():
            print(f"  {key}: {count}")

        print("\nPending Operations:")
        for key, count in stats["pending"].items():
            print(f"  {key}: {count}")
        print(f"\nProtected by hold: {stats['protected_by_hold']}")

        last_run = stats.get("last_run")
        if last_run:
            print(f"\nLast pass: {last_run['run_id']} ({last_run['status']}, {last_run['trigger']})")
            print(f"  Finished: {last_run['finished_at']}")
            print(
                f"  Archived {last_run['archived']}, anonymized {last_run['anonymized']}, "
                f"deleted {last_run['deleted']}, notified {last_run['notified']}"
            )
            for error in last_run["errors"]:
                print(f"  ! {error}")
        else:
            print("\nNo lifecycle pass recorded yet")

        print()
    finally:
        db.close()


def cmd_erase(args):
    """Process a right-to-erasure request."""
    from companion_lifecycle.errors import ValidationError
    from companion_lifecycle.services.lifecycle import build_engine

    _configure_logging(args)
    db = get_db_session()
    try:
        engine = build_engine(db)
        try:
            result = engine.process_erasure_request(args.subject, args.request_id, initiated_by="cli")
        except ValidationError as e:
            print(f"Error: {e}")
            sys.exit(1)

        print(f"Erasure request {result.request_id} completed")
        print(f"  Deleted: {result.deleted_count}")
        print(f"  Retained: {result.retained_count}")
        if result.retention_reason:
            print(f"  Reason: {result.retention_reason}")
    finally:
        db.close()


def cmd_reschedule(args):
    """Apply a subject's new retention preference."""
    from companion_lifecycle.errors import ValidationError
    from companion_lifecycle.services.lifecycle import build_engine

    _configure_logging(args)
    db = get_db_session()
    try:
        engine = build_engine(db)
        try:
            result = engine.reschedule_subject(args.subject_id, args.months, initiated_by="cli")
        except ValidationError as e:
            print(f"Error: {e}")
            sys.exit(1)

        print(f"Rescheduled {result.rescheduled} conversations to {result.retention_months} months")
    finally:
        db.close()


def cmd_classify(args):
    """Classify a transcript (no database access)."""
    from companion_lifecycle.services.lifecycle import classify_conversation

    classification = classify_conversation(args.transcript, args.sentiment)
    print(json.dumps(classification.as_dict(), indent=2))


def cmd_redact(args):
    """Show the anonymized form of a transcript (no database access)."""
    from companion_lifecycle.services.lifecycle.redaction import find_matches, redact

    text = args.text if args.text is not None else sys.stdin.read()
    print(redact(text))
    if args.explain:
        for rule, count in find_matches(text).items():
            print(f"  {rule}: {count}", file=sys.stderr)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Conversation Retention Lifecycle CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scheduled daily pass
  python -m companion_lifecycle.cli.lifecycle run

  # Check pending work
  python -m companion_lifecycle.cli.lifecycle status --json

  # Process an erasure request
  python -m companion_lifecycle.cli.lifecycle erase 6f1c... --subject 2b9e...

  # Preview redaction
  echo "email me at jo@example.com" | python -m companion_lifecycle.cli.lifecycle redact
        """,
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # run command
    run_parser = subparsers.add_parser("run", help="Run one lifecycle pass")
    run_parser.add_argument(
        "--trigger", default="scheduled", choices=["scheduled", "manual"], help="Recorded trigger (default: scheduled)"
    )
    run_parser.add_argument("--plain", action="store_true", help="Human-readable logs instead of JSON")
    run_parser.set_defaults(func=cmd_run)

    # status command
    status_parser = subparsers.add_parser("status", help="Show lifecycle status")
    status_parser.add_argument("--json", action="store_true", help="Print raw JSON")
    status_parser.set_defaults(func=cmd_status)

    # erase command
    erase_parser = subparsers.add_parser("erase", help="Process an erasure request")
    erase_parser.add_argument("request_id", help="Erasure request UUID")
    erase_parser.add_argument("--subject", required=True, help="Subject UUID the request belongs to")
    erase_parser.add_argument("--plain", action="store_true", help="Human-readable logs instead of JSON")
    erase_parser.set_defaults(func=cmd_erase)

    # reschedule command
    reschedule_parser = subparsers.add_parser("reschedule", help="Apply a new retention preference")
    reschedule_parser.add_argument("subject_id", help="Subject UUID")
    reschedule_parser.add_argument("--months", type=int, required=True, help="Retention preference (12-84 months)")
    reschedule_parser.add_argument("--plain", action="store_true", help="Human-readable logs instead of JSON")
    reschedule_parser.set_defaults(func=cmd_reschedule)

    # classify command
    classify_parser = subparsers.add_parser("classify", help="Classify a transcript")
    classify_parser.add_argument("transcript", help="Transcript text")
    classify_parser.add_argument("--sentiment", default="neu", choices=["pos", "neu", "neg"], help="Sentiment")
    classify_parser.set_defaults(func=cmd_classify)

    # redact command
    redact_parser = subparsers.add_parser("redact", help="Redact PII from text")
    redact_parser.add_argument("text", nargs="?", default=None, help="Text to redact (default: stdin)")
    redact_parser.add_argument("--explain", action="store_true", help="Print per-rule match counts to stderr")
    redact_parser.set_defaults(func=cmd_redact)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
