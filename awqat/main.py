import argparse
import logging
import sys

from awqat.prayer.errors import AwqatError

APPLY_NOTE = (
    "A running `awqat run` service applies this on its next trigger (restart, alarm or config change); "
    "alarms it already holds are checked against these settings before they are delivered."
)


def setup_basic_logging():
    """Setup basic stdout logging before config is loaded"""
    root_logger = logging.getLogger()
    if not root_logger.handlers:  # Only add handler if none exists
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        ))
        root_logger.addHandler(handler)
        root_logger.setLevel(logging.DEBUG)
        logging.debug("Basic logging initialized")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="awqat", description="Prayer times and prayer reminders")
    parser.add_argument("--config", help="Path to config file (default: ./config.yaml)")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Reschedule from saved settings and keep firing reminders")

    times = sub.add_parser("times", help="Print prayer times for a day")
    times.add_argument("--date", help="YYYY-MM-DD (default: today)")

    schedule = sub.add_parser("schedule", help="Save reminder settings; the running service picks them up on its next trigger")
    schedule.add_argument("prayers", nargs="+", help="fajr dhuhr asr maghrib isha")
    schedule.add_argument("--offset", type=int, default=0, help="Minutes relative to the prayer time (negative = before)")
    schedule.add_argument("--title")
    schedule.add_argument("--body")
    schedule.add_argument("--message", action="append", dest="messages", help="Random body pool entry (repeatable)")

    cancel = sub.add_parser("cancel", help="Cancel one prayer's reminders, or all of them")
    cancel.add_argument("prayer", nargs="?")

    sub.add_parser("status", help="Show saved settings")
    return parser


def main(argv=None) -> int:
    setup_basic_logging()
    args = build_parser().parse_args(argv)
    command = args.command or "run"

    from awqat.core.app import ReminderApp

    app = ReminderApp(config_path=args.config or "config.yaml", watch_config=(command == "run"))
    if command == "run":
        app.run()
        return 0

    plugin = app.plugin
    try:
        if command == "times":
            times = plugin.get_prayer_times(args.date)
            print(f"Prayer times for {times.date.isoformat()}")
            for name, value in times.as_dict().items():
                if name != "date":
                    print(f"  {name:<8} {value[11:16] if value else 'unavailable'}")
        elif command == "schedule":
            plugin.schedule_reminders(args.prayers, args.offset, args.title, args.body, args.messages)
            config = plugin.config
            if config.coordinate.is_unset:
                print("Saved, but no location is configured yet; nothing will fire")
            else:
                for alarm in plugin.scheduler.build_trigger_set(config, plugin.now_provider()):
                    print(f"  #{alarm.notification_id} {alarm.kind.value:<8} {alarm.trigger_at.isoformat()}")
            print(APPLY_NOTE)
        elif command == "cancel":
            if args.prayer:
                plugin.cancel_reminder(args.prayer)
            else:
                plugin.cancel_all_reminders()
            print(f"Saved: {'cancelled ' + args.prayer if args.prayer else 'reminders disabled'}")
            print(APPLY_NOTE)
        elif command == "status":
            config = plugin.config
            print(config.model_dump_json(indent=2) if config else "Not configured")
    except AwqatError as e:
        print(f"{e.code}: {e.message}", file=sys.stderr)
        return 1
    finally:
        app.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
