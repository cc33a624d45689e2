"""
Run the appointment reminder sweep once.

Usage:
  python scripts/process_reminders.py [--dry-run]

Meant for cron or another external scheduler. Reminders already sent are
never sent again, so overlapping runs are harmless.
"""

import argparse
import json

from fieldhub.db import session_scope
from fieldhub.logging import setup_logging
from fieldhub.services.appointments import due_reminders, process_reminders
from fieldhub.services.notifications import get_notifier
from fieldhub.services.time_rules import utcnow


def main() -> None:
    parser = argparse.ArgumentParser(description="Send SMS reminders for due appointments")
    parser.add_argument("--dry-run", action="store_true", help="List due appointments without sending")
    args = parser.parse_args()

    setup_logging()
    with session_scope() as session:
        if args.dry_run:
            due = due_reminders(session, utcnow())
            for a in due:
                print(f"[dry-run] appointment {a.id} on {a.scheduled_date.isoformat()} ({a.time_slot})")
            print(f"{len(due)} appointment(s) due")
            return
        summary, messages = process_reminders(session)

    get_notifier().deliver(messages)
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
