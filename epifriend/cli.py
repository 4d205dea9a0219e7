"""
Command-line front end.

Run with: epifriend --help
"""

import argparse
import sys
from collections.abc import Sequence
from datetime import date

from rich.console import Console
from rich.table import Table

from epifriend.app import EpiFriendApp
from epifriend.config import get_config, print_config_summary
from epifriend.domain.models import DateRange, EpisodeDetailLevel, ReportOptions, Toast, ToastType
from epifriend.services.storage import configure_logging

console = Console()

TOAST_STYLES = {ToastType.SUCCESS: "green", ToastType.ERROR: "red", ToastType.INFO: "cyan"}


def _csv(value: str | None) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def _print_toasts(toasts: Sequence[Toast]) -> None:
    for toast in toasts:
        console.print(toast.message, style=TOAST_STYLES[toast.type])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="epifriend", description="Seizure diary and medication log")
    sub = parser.add_subparsers(dest="command", required=True)

    episodes = sub.add_parser("episodes", help="Record and list episodes").add_subparsers(
        dest="action", required=True
    )
    add_episode = episodes.add_parser("add")
    add_episode.add_argument("--type", default="general")
    add_episode.add_argument("--severity")
    add_episode.add_argument("--duration")
    add_episode.add_argument("--warning-symptoms", help="Comma separated symptom codes")
    add_episode.add_argument("--during-symptoms")
    add_episode.add_argument("--after-symptoms")
    add_episode.add_argument("--triggers")
    add_episode.add_argument("--witnessed", action="store_true")
    add_episode.add_argument("--emergency-called", action="store_true")
    add_episode.add_argument("--hospital", action="store_true")
    add_episode.add_argument("--notes", default="")
    list_episodes = episodes.add_parser("list")
    list_episodes.add_argument("--limit", type=int, default=5)

    meds = sub.add_parser("meds", help="Manage medications").add_subparsers(dest="action", required=True)
    add_med = meds.add_parser("add")
    add_med.add_argument("name")
    add_med.add_argument("--dosage", default="")
    add_med.add_argument("--frequency", type=int, default=1)
    add_med.add_argument("--times", help="Comma separated times, e.g. 08:00,20:00")
    edit_med = meds.add_parser("edit")
    edit_med.add_argument("med_id")
    edit_med.add_argument("--name")
    edit_med.add_argument("--dosage")
    edit_med.add_argument("--frequency", type=int)
    edit_med.add_argument("--times")
    meds.add_parser("list").add_argument("--all", action="store_true")
    meds.add_parser("stop").add_argument("med_id")
    for action in ("miss", "unmiss"):
        dose = meds.add_parser(action)
        dose.add_argument("med_id")
        dose.add_argument("dose_index", type=int, help="0-based dose of the day")
        dose.add_argument("--date", type=date.fromisoformat)

    sub.add_parser("settings", help="Show settings")

    allergy = sub.add_parser("allergy", help="Manage allergies").add_subparsers(dest="action", required=True)
    allergy.add_parser("add").add_argument("name")
    allergy.add_parser("remove").add_argument("index", type=int)

    sub.add_parser("medicines", help="Search the medicine list").add_argument("query", nargs="?", default="")

    report = sub.add_parser("report", help="Export a PDF report")
    report.add_argument("--from", dest="date_from", type=date.fromisoformat)
    report.add_argument("--to", dest="date_to", type=date.fromisoformat)
    report.add_argument("--basic", action="store_true", help="Only date, time and type per episode")
    report.add_argument("--no-episodes", action="store_true")
    report.add_argument("--no-missed", action="store_true")
    report.add_argument("--no-patient-info", action="store_true")

    sub.add_parser("config", help="Print the configuration summary")
    return parser


def _episodes(app: EpiFriendApp, args: argparse.Namespace) -> None:
    t = app.translator
    if args.action == "add":
        app.episodes.add(
            {
                "type": args.type,
                "severity": args.severity,
                "duration": args.duration,
                "warning_symptoms": _csv(args.warning_symptoms),
                "during_symptoms": _csv(args.during_symptoms),
                "after_symptoms": _csv(args.after_symptoms),
                "triggers": _csv(args.triggers),
                "someone_witnessed": args.witnessed,
                "emergency_called": args.emergency_called,
                "went_to_hospital": args.hospital,
                "notes": args.notes,
            }
        )
        app.toasts.success(t("cli.episode_saved"))
        return

    table = Table(title=t("pdf.report.episodes"))
    for column in ("date", "time", "type", "severity", "notes"):
        table.add_column(t(f"pdf.report.{column}"))
    for episode in app.episodes.recent(args.limit):
        table.add_row(
            t.format_date(episode.timestamp),
            t.format_time(episode.timestamp),
            t(f"common.episode_types.{episode.type}"),
            episode.severity or "-",
            episode.notes or "-",
        )
    console.print(table)


def _meds(app: EpiFriendApp, args: argparse.Namespace) -> None:
    t = app.translator
    store = app.medications
    if args.action == "add":
        store.add(
            {"name": args.name, "dosage": args.dosage, "frequency": args.frequency, "times": _csv(args.times)}
        )
        app.toasts.success(t("cli.medication_saved"))
    elif args.action == "edit":
        fields = {
            key: value
            for key, value in (
                ("name", args.name),
                ("dosage", args.dosage),
                ("frequency", args.frequency),
                ("times", _csv(args.times) if args.times is not None else None),
            )
            if value is not None
        }
        if store.update(args.med_id, fields) is None:
            app.toasts.error(t("cli.medication_not_found", id=args.med_id))
        else:
            app.toasts.success(t("cli.medication_saved"))
    elif args.action == "stop":
        if store.stop(args.med_id) is None:
            app.toasts.error(t("cli.medication_not_found", id=args.med_id))
        else:
            app.toasts.success(t("cli.medication_stopped"))
    elif args.action == "miss":
        if store.get(args.med_id) is None:
            app.toasts.error(t("cli.medication_not_found", id=args.med_id))
        elif not store.is_missed(args.med_id, args.dose_index, args.date):
            store.log_missed(args.med_id, args.dose_index, args.date)
            app.toasts.success(t("cli.dose_marked_missed"))
    elif args.action == "unmiss":
        if store.remove_missed(args.med_id, args.dose_index, args.date):
            app.toasts.success(t("cli.dose_marked_taken"))
    else:
        table = Table(title=t("pdf.report.medication"))
        for column in ("id", "name", "dosage", "doses/day", "times", "missed today"):
            table.add_column(column)
        meds = store.medications if args.all else store.active()
        for med in meds:
            table.add_row(
                med.id,
                med.name,
                med.dosage,
                str(med.frequency),
                ", ".join(med.times),
                "yes" if store.has_any_missed_today(med.id) else "",
            )
        console.print(table)


def _allergy(app: EpiFriendApp, args: argparse.Namespace) -> None:
    t = app.translator
    if args.action == "add":
        if app.settings.add_allergy(args.name):
            app.toasts.success(t("cli.allergy_added"))
        else:
            app.toasts.info(t("cli.allergy_not_added"))
    elif app.settings.remove_allergy(args.index):
        app.toasts.success(t("cli.allergy_removed"))
    else:
        app.toasts.error(t("cli.allergy_not_found", index=args.index))


def _report(app: EpiFriendApp, args: argparse.Namespace) -> None:
    date_range = None
    if args.date_from or args.date_to:
        date_range = DateRange(from_=args.date_from, to=args.date_to)
    options = ReportOptions(
        include_episodes=not args.no_episodes,
        include_missed_meds=not args.no_missed,
        episode_detail_level=EpisodeDetailLevel.BASIC if args.basic else EpisodeDetailLevel.FULL,
        include_patient_info=not args.no_patient_info,
        date_range=date_range,
    )
    result = app.reports.generate(options)
    if result.success:
        app.toasts.success(app.translator("cli.report_saved", fileName=result.path))
    else:
        app.toasts.error(app.translator("cli.report_failed"))


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    configure_logging(config.logging.level, config.logging.format)

    if args.command == "config":
        print_config_summary(console)
        return 0

    app = EpiFriendApp(config)

    if args.command == "episodes":
        _episodes(app, args)
    elif args.command == "meds":
        _meds(app, args)
    elif args.command == "allergy":
        _allergy(app, args)
    elif args.command == "medicines":
        for medicine in app.medicines.search(args.query):
            console.print(f"{medicine.name} [dim]{', '.join(medicine.dosages)}[/dim]")
    elif args.command == "settings":
        console.print_json(data=app.settings.settings.to_storage())
    elif args.command == "report":
        _report(app, args)

    toasts = app.toasts.toasts
    _print_toasts(toasts)
    return 1 if any(toast.type == ToastType.ERROR for toast in toasts) else 0


if __name__ == "__main__":
    sys.exit(main())
