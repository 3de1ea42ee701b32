"""
Command-line entry point for the booking service.

Usage:
    Console mode:     python main.py console
    Reminder pass:    python main.py reminders [--date YYYY-MM-DD]
    Weekly summary:   python main.py summary [--date YYYY-MM-DD]
    Schedule view:    python main.py schedule [--date YYYY-MM-DD]

The reminder pass prints each message instead of sending it. The store
comes from DATABASE_URL.
"""

import argparse
import logging
from datetime import date, timedelta
from typing import Optional

from gemach.config import settings
from gemach.db.store import Store
from gemach.utils import utc_now

logger = logging.getLogger(__name__)


def _run_console_mode(store: Store) -> None:
    """Start the interactive SMS console against the configured store."""
    from console_demo import ConsoleSession, build_oracle

    ConsoleSession(store=store, oracle=build_oracle()).run()


def _run_reminders(store: Store, today: Optional[date]) -> None:
    from gemach.conversation.sessions import purge_expired_sessions
    from gemach.tools.reminders import manager_daily_notice, send_due_reminders

    def print_sms(phone: str, text: str) -> None:
        print(f"--- To {phone} ---\n{text}\n")

    notice = manager_daily_notice(store, today)
    if notice is not None:
        print_sms(settings.business.manager_phone, notice)

    report = send_due_reminders(store, print_sms, today)
    print(
        f"Sent {len(report.day_before_sent)} day-before and "
        f"{len(report.return_sent)} return reminders; {len(report.failures)} failed."
    )
    purged = purge_expired_sessions(store, utc_now())
    if purged:
        logger.info("Purged %d expired sessions", purged)


def _run_summary(store: Store, today: Optional[date]) -> None:
    from gemach.tools.reminders import weekly_summary

    print(f"To manager {settings.business.manager_phone}:\n")
    print(weekly_summary(store, today))


def _run_schedule(store: Store, today: Optional[date]) -> None:
    from gemach.admin import item_stats, slots_report
    from gemach.tools.dates import format_date, next_appointment_dates
    from gemach.tools.schedule import get_schedule_config, list_date_overrides

    today = today or date.today()
    print("Weekly template:")
    for weekday, day_schedule in get_schedule_config(store).items():
        slots = ", ".join(day_schedule.slots) if day_schedule.enabled else "closed"
        print(f"  {weekday.value.title()}: {slots}")

    print("\nUpcoming dates:")
    for day in next_appointment_dates(today - timedelta(days=1)):
        report = slots_report(store, day)
        if report["blocked"]:
            status = f"blocked ({report['reason'] or 'no reason given'})"
        else:
            status = ", ".join(report["free_slots"]) or "fully booked"
        print(f"  {format_date(day)}: {status}")

    overrides = list_date_overrides(store, from_date=today)
    if overrides:
        print("\nDate overrides:")
        for override in overrides:
            target = "whole day" if override.whole_day else ", ".join(override.blocked_slots)
            print(f"  {override.date_str}: {target} {override.reason or ''}".rstrip())

    stats = item_stats(store)
    print(f"\nGowns out: {stats['currently_out']} (taken out overall: {stats['total_taken_out']})")


def main() -> None:
    parser = argparse.ArgumentParser(description=f"{settings.business.name} booking service")
    parser.add_argument("command", choices=["console", "reminders", "summary", "schedule"])
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Reference date (YYYY-MM-DD) for reminders, summary and schedule; defaults to today",
    )
    args = parser.parse_args()

    store = Store.from_url()
    logger.info("Running %s against %s", args.command, store.engine.url.render_as_string(hide_password=True))
    try:
        if args.command == "console":
            _run_console_mode(store)
        elif args.command == "reminders":
            _run_reminders(store, args.date)
        elif args.command == "schedule":
            _run_schedule(store, args.date)
        else:
            _run_summary(store, args.date)
    finally:
        store.dispose()


if __name__ == "__main__":
    main()
