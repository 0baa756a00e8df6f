#!/usr/bin/env python3
"""
bookr - log work time against Jira issues via Tempo.

Usage:
    bookr [TICKET] TIME [-m MESSAGE] [-d YYYY-MM-DD] [-y]
    bookr today
    bookr sprint [--history]
    bookr progress
    bookr undo [ID|last] [--pick] [-y]
    bookr init
"""

import argparse
import asyncio
import getpass
import logging
import sys
from datetime import date, datetime, time
from typing import Callable

import gitbranch
import services
from clients import ApiError, JiraClient, TempoClient
from ledger import Ledger
from models import Provenance, Sprint, UnifiedWorklogView, WorklogRecord
from patterns import Patterns
from resolver import IssueLookupError, NoIssueResolvableError, looks_like_issue_key, resolve
from timeparse import format_for_display, format_hours, is_valid_format, parse_to_seconds, seconds_to_display
from undo import UndoOrchestrator, UndoStatus
from utils import (
    config_path,
    days_back,
    ledger_path,
    load_config,
    load_config_safe,
    parse_api_datetime,
    parse_date,
    save_config,
    setup_logging,
    today_local,
)
from workload import daily_progress, required_hours_by_weekday, total_percentage, working_days

__version__ = "1.0.0"

logger = logging.getLogger("bookr")

COMMANDS = ("log", "today", "sprint", "progress", "undo", "init")
LOG_VALUE_OPTIONS = ("-m", "--message", "-d", "--date")
DEFAULT_LOG_TIME = time(9, 0)


# ============================================================================
# Prompts
# ============================================================================


def ask(prompt: str) -> str:
    try:
        return input(prompt).strip()
    except EOFError:
        # Non-interactive: treat as no answer
        return ""


def ask_yes_no(prompt: str) -> bool:
    return ask(f"{prompt} [y/N]: ").lower() in ("y", "yes")


def choose_from(items: list, label: Callable[[object], str], title: str):
    """Numbered menu; 0 or empty input cancels and returns None."""
    print(f"[*] {title}")
    for n, item in enumerate(items, 1):
        print(f"    {n:>2}) {label(item)}")
    print("     0) Cancel")
    answer = ask("Select: ")
    if not answer.isdigit() or not 0 < int(answer) <= len(items):
        return None
    return items[int(answer) - 1]


# ============================================================================
# Rendering
# ============================================================================


def _record_label(r: WorklogRecord) -> str:
    issue = r.issue_key or f"#{r.issue_id}"
    when = r.started.astimezone().strftime("%a %Y-%m-%d %H:%M")
    summary = f" {r.issue_summary[:50]}" if r.issue_summary else ""
    return f"{when} | {issue:<12} | {seconds_to_display(r.time_spent_seconds):>7} |{summary} [{r.id}]"


def print_table(records: list[WorklogRecord], title: str) -> None:
    if not records:
        print("[*] No worklogs found.")
        return

    rows = []
    for r in records:
        tempo_id = r.id if r.provenance == Provenance.TEMPO else ""
        jira_id = r.secondary_id if tempo_id else r.id
        issue = r.issue_key or f"#{r.issue_id}"
        summary = r.issue_summary or "(unknown issue)"
        rows.append((tempo_id, jira_id or "", issue, seconds_to_display(r.time_spent_seconds), summary))

    header = ("Tempo ID", "Jira ID", "Issue", "Time", "Summary")
    widths = [max(len(header[i]), *(len(row[i]) for row in rows)) for i in range(4)]

    def line(cols) -> str:
        return " | ".join(c.ljust(w) for c, w in zip(cols[:4], widths)) + " | " + cols[4]

    separator = "-" * min(len(line(header)) + 30, 100)
    print(title)
    print(separator)
    print(line(header))
    print(separator)
    for row in rows:
        print(line(row))
    print(separator)


def print_totals(view: UnifiedWorklogView, label: str = "Total time") -> None:
    print(f"[+] {label}: {seconds_to_display(view.total_seconds)} ({format_hours(view.total_seconds)} hours)")
    print(f"    Worklog entries: {len(view)}")
    print(f"    Issues worked on: {view.unique_issue_count}")
    if view.unmatched_ledger_ids:
        print(
            f"[*] {len(view.unmatched_ledger_ids)} locally recorded worklog(s) not found remotely: "
            f"{', '.join(view.unmatched_ledger_ids)}"
        )


def print_days(view: UnifiedWorklogView) -> None:
    for group in view.days:
        print()
        print(f"[*] {group.day:%a %Y-%m-%d}")
        print("-" * 40)
        for r in group.records:
            issue = r.issue_key or f"#{r.issue_id}"
            print(f"{issue:<12} | {r.issue_summary or '(unknown issue)'}")
            if r.comment:
                print(f"{seconds_to_display(r.time_spent_seconds):<12} - {r.comment}")
            else:
                print(f"{seconds_to_display(r.time_spent_seconds):<12}")
        print(f"    Day total: {seconds_to_display(group.total_seconds)}")


def _bar(percent: float, width: int = 20) -> str:
    filled = int(min(percent, 100) / 100 * width)
    return "#" * filled + "." * (width - filled)


# ============================================================================
# Shared setup
# ============================================================================


def _clients(require_tempo: bool):
    config = load_config_safe(require_tempo=require_tempo)
    if config is None:
        return None
    jira = JiraClient(config)
    tempo = TempoClient(config) if config.has_tempo else None
    return jira, tempo


def _sprint_window(sprint: Sprint) -> tuple[date, date] | None:
    start = parse_api_datetime(sprint.start_date or "")
    end = parse_api_datetime(sprint.end_date or "")
    if start is None or end is None:
        return None
    return start.astimezone().date(), end.astimezone().date()


# ============================================================================
# Commands
# ============================================================================


async def log_time(args, ledger: Ledger) -> int:
    ticket, time_text = args.ticket, args.time
    if time_text is None:
        # Single positional: it is the time unless it looks like a ticket
        if looks_like_issue_key(ticket):
            print(f"[!] Missing time for {ticket}. Example: bookr {ticket} 2h30m", file=sys.stderr)
            return 2
        ticket, time_text = None, ticket

    if not is_valid_format(time_text):
        print(f"[!] Invalid time format '{time_text}'. Use e.g. 2h30m, 2.5h or 45m.", file=sys.stderr)
        return 2
    seconds = parse_to_seconds(time_text)
    if seconds <= 0:
        print("[!] Time must be greater than zero.", file=sys.stderr)
        return 2

    if args.date:
        if not Patterns.DATE_FORMAT.match(args.date):
            print(f"[!] Invalid date '{args.date}'. Expected YYYY-MM-DD.", file=sys.stderr)
            return 2
        try:
            started = datetime.combine(parse_date(args.date), DEFAULT_LOG_TIME).astimezone()
        except ValueError:
            print(f"[!] Invalid date '{args.date}'.", file=sys.stderr)
            return 2
    else:
        started = datetime.now().astimezone().replace(microsecond=0)

    clients = _clients(require_tempo=False)
    if clients is None:
        return 1
    jira, tempo = clients

    branch = None
    if not ticket:
        if gitbranch.is_repository():
            branch = gitbranch.current_branch()
        else:
            logger.debug("Not inside a Git repository; no branch to read the ticket from")
    try:
        issue = await asyncio.to_thread(resolve, jira, ticket, branch)
    except NoIssueResolvableError as e:
        print(f"[!] {e}", file=sys.stderr)
        print("    Pass the ticket explicitly: bookr PROJ-123 2h", file=sys.stderr)
        try:
            recent = await asyncio.to_thread(jira.get_my_recent_issues)
        except ApiError as lookup_error:
            logger.debug("No recent issues: %s", lookup_error)
            recent = []
        if recent:
            print("    Your recently updated issues:", file=sys.stderr)
            for candidate in recent:
                print(f"      {candidate.key:<12} {candidate.summary}", file=sys.stderr)
        return 0
    except IssueLookupError as e:
        print(f"[!] {e}", file=sys.stderr)
        print("    Check the key and that you have access to the issue.", file=sys.stderr)
        return 0

    print()
    print("[*] Confirm worklog entry")
    print(f"    Issue:   {issue.key} - {issue.summary}")
    print(f"    Project: {issue.project_name}")
    print(f"    Status:  {issue.status}")
    print(f"    Time:    {format_for_display(time_text)} ({seconds_to_display(seconds)})")
    print(f"    Date:    {started:%Y-%m-%d %H:%M}")
    if args.message:
        print(f"    Comment: {args.message}")
    print()

    if not args.yes and not await asyncio.to_thread(ask_yes_no, "Create this worklog?"):
        print("[*] Cancelled. Nothing was logged.")
        return 0

    try:
        entry = await asyncio.to_thread(
            services.create_worklog, jira, tempo, issue, seconds, started, args.message or "", ledger
        )
    except ApiError as e:
        print(f"[!] {e}", file=sys.stderr)
        print("    Nothing was logged. Check your connection and try again.", file=sys.stderr)
        return 0

    print(f"[+] Logged {seconds_to_display(seconds)} on {issue.key} (worklog {entry.id}).")
    print("    Made a mistake? Run `bookr undo` to remove it.")
    return 0


async def show_today(args, ledger: Ledger) -> int:
    clients = _clients(require_tempo=True)
    if clients is None:
        return 1
    jira, tempo = clients

    today = today_local()
    try:
        me = await asyncio.to_thread(jira.get_myself)
        view = await services.load_view(jira, tempo, me["accountId"], today, today, ledger)
    except ApiError as e:
        print(f"[!] {e}", file=sys.stderr)
        print("    Could not load today's worklogs. Try again in a moment.", file=sys.stderr)
        return 0

    print_table(view.records, f"Worklogs for {today:%A, %Y-%m-%d}")
    if len(view):
        print()
        print_totals(view, "Total time today")
    return 0


def _select_sprint(jira: JiraClient) -> Sprint | None:
    boards = jira.get_boards()
    if not boards:
        print("[!] No boards found.", file=sys.stderr)
        return None
    if len(boards) == 1:
        board = boards[0]
        print(f"[*] Using board: {board.get('name')}")
    else:
        board = choose_from(boards, lambda b: b.get("name", str(b.get("id"))), "Select a board:")
        if board is None:
            return None

    sprints = jira.get_sprints_for_board(board["id"])
    if not sprints:
        print("[!] No sprints found for the selected board.", file=sys.stderr)
        return None
    print(f"[*] Found {len(sprints)} sprints for this board.")

    def label(s: Sprint) -> str:
        window = _sprint_window(s)
        span = f" ({window[0]} - {window[1]})" if window else ""
        return f"{s.name} [{s.state}]{span}"

    return choose_from(sprints, label, "Select a sprint:")


async def show_sprint(args, ledger: Ledger) -> int:
    clients = _clients(require_tempo=True)
    if clients is None:
        return 1
    jira, tempo = clients

    try:
        if args.history:
            sprint = await asyncio.to_thread(_select_sprint, jira)
            if sprint is None:
                print("[*] No sprint selected.")
                return 0
        else:
            sprint = await asyncio.to_thread(jira.get_active_sprint)

        window = _sprint_window(sprint)
        if window is None:
            print(f"[!] Sprint '{sprint.name}' has no start or end date.", file=sys.stderr)
            print("    Use `bookr sprint --history` to pick another sprint.", file=sys.stderr)
            return 0

        print(f"[*] Fetching worklogs for sprint: {sprint.name} ({window[0]} to {window[1]})")
        me = await asyncio.to_thread(jira.get_myself)
        view = await services.load_view(jira, tempo, me["accountId"], window[0], window[1], ledger)
    except ApiError as e:
        print(f"[!] {e}", file=sys.stderr)
        print("    Could not load sprint worklogs. Check your board access and try again.", file=sys.stderr)
        return 0

    print("-" * 80)
    print(f"SPRINT WORKLOGS: {sprint.name} ({window[0]} to {window[1]})")
    print("-" * 80)
    if not len(view):
        print("[*] No worklogs found for this sprint period.")
        return 0

    print_days(view)
    print("-" * 80)
    print_totals(view, "Total sprint time")
    average = view.total_seconds / len(view.days)
    print(f"    Average per day: {seconds_to_display(average)} ({format_hours(average)} hours)")
    return 0


async def show_progress(args, ledger: Ledger) -> int:
    clients = _clients(require_tempo=True)
    if clients is None:
        return 1
    jira, tempo = clients

    try:
        sprint = await asyncio.to_thread(jira.get_active_sprint)
        window = _sprint_window(sprint)
        if window is None:
            print(f"[!] Sprint '{sprint.name}' has no start or end date.", file=sys.stderr)
            return 0
        me = await asyncio.to_thread(jira.get_myself)
        account_id = me["accountId"]
        view = await services.load_view(jira, tempo, account_id, window[0], window[1], ledger)
        try:
            scheme = await asyncio.to_thread(tempo.get_workload_scheme, account_id)
        except ApiError as e:
            logger.debug("No workload scheme, using default hours: %s", e)
            scheme = None
    except ApiError as e:
        print(f"[!] {e}", file=sys.stderr)
        print("    Could not load sprint progress. Try again in a moment.", file=sys.stderr)
        return 0

    rows = daily_progress(view, working_days(*window), required_hours_by_weekday(scheme))
    print(f"[*] Sprint: {sprint.name}")
    print(f"    {window[0]} to {window[1]}")
    print()
    print(f"{'Day':<10} | {'Date':<10} | {'Logged':>7} | {'Required':>8} | Progress")
    print("-" * 70)
    for r in rows:
        print(
            f"{r.day_name:<10} | {r.day:%Y-%m-%d} | {r.hours_logged:>6.2f}h | {r.hours_required:>7.2f}h | "
            f"{_bar(r.percentage)} {r.display_percentage}"
        )
    print("-" * 70)
    logged = sum(r.hours_logged for r in rows)
    print(f"[+] Total logged: {logged:.2f} hours, {total_percentage(rows):.0f}% of required")
    return 0


async def undo_worklog(args, ledger: Ledger) -> int:
    clients = _clients(require_tempo=False)
    if clients is None:
        return 1
    jira, tempo = clients
    loop = asyncio.get_running_loop()
    me: dict = {}

    def load_view(days: int, newest_first: bool) -> UnifiedWorklogView:
        # Runs in the worker thread; the coroutine runs on the main loop
        if not me:
            me.update(jira.get_myself())
        date_from, date_to = days_back(days)
        coro = services.load_view(jira, tempo, me["accountId"], date_from, date_to, ledger, newest_first)
        return asyncio.run_coroutine_threadsafe(coro, loop).result()

    orchestrator = UndoOrchestrator(
        ledger,
        load_view=load_view,
        delete=lambda record: services.delete_record(jira, tempo, record),
        confirm=lambda record: args.yes or ask_yes_no("Delete this worklog?"),
        choose=lambda records: choose_from(records, _record_label, "Select the worklog to delete:"),
    )
    result = await asyncio.to_thread(orchestrator.undo, args.id, args.pick)

    if result.ok:
        print(f"[+] {result.message}")
    elif result.status in (UndoStatus.CANCELLED, UndoStatus.NOTHING):
        print(f"[*] {result.message}")
    else:
        print(f"[!] {result.message}", file=sys.stderr)
    return 0


async def init(args, ledger: Ledger) -> int:
    print("[*] bookr init: set up your Jira and Tempo credentials")
    print()
    try:
        existing = load_config()
    except ValueError:
        existing = None

    def prompt(label: str, current: str | None, secret: bool = False) -> str:
        hint = " [keep current]" if current else ""
        reader = getpass.getpass if secret else input
        try:
            value = reader(f"{label}{hint}: ").strip()
        except EOFError:
            value = ""
        return value or (current or "")

    values = {
        "JIRA_BASE_URL": prompt("Jira base URL (e.g. https://your-domain.atlassian.net)", existing and existing.base_url),
        "JIRA_EMAIL": prompt("Jira email", existing and existing.email),
        "JIRA_API_TOKEN": prompt("Jira API token", existing and existing.api_token, secret=True),
        "TEMPO_API_TOKEN": prompt("Tempo API token (optional)", existing and existing.tempo_api_token, secret=True),
    }

    if not values["JIRA_BASE_URL"].startswith("http"):
        print("[!] Jira base URL must start with http(s)://", file=sys.stderr)
        return 1
    if "@" not in values["JIRA_EMAIL"]:
        print("[!] Please enter a valid email.", file=sys.stderr)
        return 1
    if not values["JIRA_API_TOKEN"]:
        print("[!] API token cannot be empty.", file=sys.stderr)
        return 1
    if not values["TEMPO_API_TOKEN"]:
        del values["TEMPO_API_TOKEN"]

    try:
        path = save_config(values, config_path())
    except OSError as e:
        print(f"[!] Could not write config: {e}", file=sys.stderr)
        return 1
    print()
    print(f"[+] Config saved to {path}")

    print("[*] Testing Jira connection...")
    config = load_config()
    jira = JiraClient(config)
    try:
        me = await asyncio.to_thread(jira.get_myself)
    except ApiError as e:
        print(f"[!] {e}", file=sys.stderr)
        print("    Check the URL, email and token, then run `bookr init` again.", file=sys.stderr)
        return 0
    print(f"[+] Connected as {me.get('displayName', '?')} ({me.get('emailAddress', config.email)})")

    if config.has_tempo:
        print("[*] Testing Tempo connection...")
        try:
            await asyncio.to_thread(TempoClient(config).get_workload_scheme, me.get("accountId", ""))
        except ApiError as e:
            print(f"[!] {e}", file=sys.stderr)
            print(
                "    Create a new token at https://id.tempo.io/manage/api-tokens and run `bookr init` again.",
                file=sys.stderr,
            )
            return 0
        print("[+] Tempo token works.")
    return 0


HANDLERS = {
    "log": log_time,
    "today": show_today,
    "sprint": show_sprint,
    "progress": show_progress,
    "undo": undo_worklog,
    "init": init,
}


# ============================================================================
# CLI
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help="Show debug logging"
    )

    parser = argparse.ArgumentParser(
        prog="bookr",
        description="Log work time against Jira issues via Tempo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Use the Git branch for the ticket
    bookr 2h15m

    # Explicit ticket with a description
    bookr PROJ-123 1h30m -m "Fixed bug"

    # Log for a past date
    bookr -d 2024-01-15 4h

    bookr today
    bookr sprint --history
    bookr undo
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    log = sub.add_parser("log", parents=[common], help="Log time (default command)")
    log.add_argument("ticket", help="Jira ticket key, or the time when the ticket comes from the branch")
    log.add_argument("time", nargs="?", help='Time to log, e.g. "2h 30m", "1.5h", "45m"')
    log.add_argument("-m", "--message", help="Description of work done")
    log.add_argument("-d", "--date", help="Date to log time for (YYYY-MM-DD)")
    log.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")

    sub.add_parser("today", parents=[common], help="Show today's worklogs and total hours")

    sprint = sub.add_parser("sprint", parents=[common], help="Show worklogs of the active sprint")
    sprint.add_argument("--history", action="store_true", help="Pick a board and sprint interactively")

    sub.add_parser("progress", parents=[common], help="Show sprint progress against required hours")

    undo = sub.add_parser("undo", parents=[common], help="Delete a worklog (default: the last one created)")
    undo.add_argument("id", nargs="?", help='Worklog ID, or "last"')
    undo.add_argument("--pick", action="store_true", help="Choose from today's / recent worklogs")
    undo.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")

    sub.add_parser("init", parents=[common], help="Write the config file interactively")
    return parser


def _with_default_command(argv: list[str]) -> list[str]:
    """`bookr 2h` is shorthand for `bookr log 2h`."""
    first = None
    skip = False
    for n, a in enumerate(argv):
        if skip:
            skip = False
        elif a in LOG_VALUE_OPTIONS:
            skip = True
        elif not a.startswith("-"):
            first = n
            break
    if first is None or argv[first] in COMMANDS:
        return argv
    if any(a in ("-h", "--help", "--version") for a in argv[:first]):
        return argv
    return ["log", *argv]


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(_with_default_command(argv))

    if not args.command:
        parser.print_help()
        return 0

    setup_logging("DEBUG" if args.verbose else None)
    ledger = Ledger.at(ledger_path())
    ledger.maybe_prune()

    try:
        return asyncio.run(HANDLERS[args.command](args, ledger))
    except KeyboardInterrupt:
        print()
        print("[*] Aborted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
