"""Interactive CLI application."""
import time
from datetime import date, timedelta
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, IntPrompt, Prompt
from rich.table import Table

from goal_unbox.adapters import ConfirmingVerifier, DigitCodeReader, TruncatingSummarizer
from goal_unbox.config import DEFAULT_CONFIG_PATH, DEFAULT_DB_PATH, DEFAULT_LOG_PATH, load_rules
from goal_unbox.countdown import CountdownKind
from goal_unbox.db import init_db
from goal_unbox.engine import GoalSession
from goal_unbox.errors import GoalUnboxError
from goal_unbox.history import delete_record, get_progress_color, get_weekly_stats, recent_history
from goal_unbox.importer import import_goals, parse_goal_entries
from goal_unbox.log import setup_logger
from goal_unbox.models import DailyPlan, GoalStatus
from goal_unbox.scheduler import sort_goals
from goal_unbox.session import (
    AwaitingBreakChoice, AwaitingCode, BreakActive, GoalActive, GoalCompleted, IntentKind,
    SessionState, Snapshot, VerifyingProof,
)
from goal_unbox.store import SqliteStore
from goal_unbox.timeutils import format_countdown, format_duration

console = Console()

STATUS_STYLE = {
    GoalStatus.PENDING: "cyan",
    GoalStatus.COMPLETED: "green",
    GoalStatus.SKIPPED: "yellow",
}


class CommandCancelled(Exception):
    """Raised when the user types 'q' at a prompt inside a command."""


def ask(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer is not None and answer.strip().lower() == "q":
        raise CommandCancelled()
    return (answer or "").strip()


def ask_goal_number(plan: DailyPlan, prompt: str = "Goal #") -> str:
    goals = sort_goals(plan.goals)
    if not goals:
        raise CommandCancelled()
    number = IntPrompt.ask(prompt, choices=[str(i) for i in range(1, len(goals) + 1)])
    return goals[number - 1].id


def confirm_proof(goal_description: str, proof) -> bool:
    console.print(Panel(goal_description, title="Goal", border_style="cyan"))
    console.print(f"[bold]Proof:[/bold] {proof}")
    return Confirm.ask("Does this proof show the goal is done?")


def build_session(db_path: str = DEFAULT_DB_PATH, config_path: str = DEFAULT_CONFIG_PATH, clock=None) -> GoalSession:
    init_db(db_path)
    rules = load_rules(config_path)
    return GoalSession(
        SqliteStore(db_path),
        clock=clock,
        rules=rules,
        verifier=ConfirmingVerifier(confirm_proof),
        extractor=DigitCodeReader(),
        summarizer=TruncatingSummarizer(rules.summary_max_length),
    )


# -- rendering --

def show_welcome():
    console.print(Panel(
        "[bold]Goal Unbox[/bold]\n[dim]Lock the code away, earn it back by finishing the goal[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("today", "Today's plan and status"),
        ("add / edit / rm", "Change today's plan"),
        ("import", "Add goals from a file"),
        ("start", "Start a goal"),
        ("code", "Sequester the lock code"),
        ("proof", "Submit proof of completion"),
        ("ask", "Reply to the verifier"),
        ("skip", "Skip the active goal (reflection required)"),
        ("abandon", "Drop the active goal from the plan"),
        ("pick", "Pick the goal after this break"),
        ("wait", "Watch the running countdown"),
        ("history", "Completed goals"),
        ("week", "Weekly plan"),
        ("commit", "Daily commitment"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<16}[/cyan] {desc}")


def render_plan(plan: DailyPlan, title: str | None = None) -> None:
    table = Table(title=title or f"Plan for {plan.date.strftime('%A %d %B')}")
    table.add_column("#", justify="right")
    table.add_column("Time")
    table.add_column("Subject", style="bold")
    table.add_column("Goal")
    table.add_column("Status")
    for i, goal in enumerate(sort_goals(plan.goals), 1):
        when = f"{goal.scheduled_start}-{goal.scheduled_end}" if goal.is_scheduled else ""
        style = STATUS_STYLE[goal.status]
        table.add_row(
            str(i), when, goal.subject, goal.description[:60] or "[dim]no description[/dim]",
            f"[{style}]{goal.status.value}[/{style}]",
        )
    console.print(table)


def render_status(snap: Snapshot) -> None:
    state = snap.state
    if snap.error:
        console.print(f"[red]{snap.error}[/red]")
    if snap.message:
        console.print(f"[dim]{snap.message}[/dim]")

    if isinstance(state, (GoalActive, VerifyingProof)):
        active = state.active
        body = f"[bold]{active.subject}[/bold]\n{active.description}"
        remaining = snap.countdowns.get(CountdownKind.GOAL_DEADLINE)
        if isinstance(state, VerifyingProof):
            body += "\n\n[yellow]Verifying proof, timer paused[/yellow]"
        elif state.deadline_passed:
            body += "\n\n[red]Time is up[/red]"
            if active.consequence:
                body += f"\n[red]Consequence: {active.consequence}[/red]"
        elif remaining is not None:
            body += f"\n\nTime left: [bold]{format_countdown(remaining)}[/bold]"
            if active.consequence:
                body += f"\n[dim]If time runs out: {active.consequence}[/dim]"
        if state.feedback and state.feedback.summary:
            body += f"\n\n[dim]Verifier: {state.feedback.summary}[/dim]"
            for missing in state.feedback.missing_aspects:
                body += f"\n[dim]  missing: {missing}[/dim]"
        console.print(Panel(body, title="Active goal", border_style="green"))
    elif isinstance(state, AwaitingCode):
        console.print(Panel(
            f"[bold]{state.draft.subject}[/bold]\n{state.draft.description}\n\n"
            "Lock your code away, then enter it with [cyan]code[/cyan].",
            title="Waiting for code", border_style="yellow",
        ))
    elif isinstance(state, AwaitingBreakChoice):
        remaining = snap.countdowns.get(CountdownKind.NEXT_GOAL_SELECTION, timedelta(0))
        console.print(Panel(
            f"Break earned: [bold]{format_duration(state.allocation.duration_remaining)}[/bold]"
            + (f" (tax paid: {format_duration(state.allocation.applied_tax)})" if state.allocation.applied_tax else "")
            + f"\nPick the next goal within {format_countdown(remaining)} with [cyan]pick[/cyan].",
            title="Goal complete", border_style="green",
        ))
    elif isinstance(state, BreakActive):
        remaining = snap.countdowns.get(CountdownKind.BREAK_REMAINING, timedelta(0))
        code = "[green]code locked[/green]" if state.secret_code else "[yellow]enter the next code with 'code'[/yellow]"
        if CountdownKind.BREAK_REMAINING not in snap.countdowns:
            code += "\n[dim]No break left, the goal starts as soon as the code is in.[/dim]"
        console.print(Panel(
            f"Break left: [bold]{format_countdown(remaining)}[/bold]\n"
            f"Next: {state.next_goal.subject or state.next_goal.description[:40]}\n{code}",
            title="Break", border_style="blue",
        ))
    elif isinstance(state, GoalCompleted):
        summary = state.record.goal_summary if state.record and state.record.goal_summary else "Goal"
        console.print(Panel(f"[bold]{summary}[/bold] done.", title="Goal complete", border_style="green"))
        if snap.streak.last_unlocked_code:
            console.print(f"  Your code: [bold]{snap.streak.last_unlocked_code}[/bold]")

    streak = snap.streak
    line = f"  Streak: [bold]{streak.current_streak}[/bold]  |  Skips left: [bold]{snap.skips_left}[/bold]"
    if streak.accrued_tax:
        line += f"  |  Tax owed: [red]{format_duration(streak.accrued_tax)}[/red]"
    if streak.commitment:
        mark = "[green]done[/green]" if streak.commitment.completed else "[yellow]open[/yellow]"
        line += f"  |  Commitment: {streak.commitment.text} ({mark})"
    console.print(line)


# -- commands --

def cmd_today(session: GoalSession):
    snap = session.snapshot()
    if snap.state.kind == SessionState.GOAL_COMPLETED:
        snap = session.dispatch(IntentKind.ACKNOWLEDGE)
    render_plan(snap.plan)
    render_status(snap)
    if snap.day_finished:
        tomorrow = session.schedule_next_day()
        console.print(f"[green]All goals for today are done.[/green] Tomorrow has {len(tomorrow.goals)} goal(s) planned.")


def _goal_fields() -> dict:
    description = ask("Description")
    subject = ask("Subject", default="")
    start = ask("Start (HH:MM, blank for none)", default="") or None
    end = None
    if start:
        end = ask("End (HH:MM)")
    minutes = ask("Estimated minutes (blank for none)", default="")
    return {
        "description": description,
        "subject": subject,
        "scheduled_start": start,
        "scheduled_end": end,
        "estimated_duration": timedelta(minutes=int(minutes)) if minutes else None,
    }


def cmd_add(session: GoalSession):
    session.dispatch(IntentKind.ADD_GOAL, _goal_fields())
    render_plan(session.snapshot().plan)


def cmd_edit(session: GoalSession):
    plan = session.snapshot().plan
    render_plan(plan)
    goal = plan.get(ask_goal_number(plan))
    changes = {
        "description": ask("Description", default=goal.description),
        "subject": ask("Subject", default=goal.subject),
    }
    start = ask("Start (HH:MM, '-' to clear)", default=goal.scheduled_start or "-")
    if start == "-":
        changes["scheduled_start"] = changes["scheduled_end"] = None
    else:
        changes["scheduled_start"] = start
        changes["scheduled_end"] = ask("End (HH:MM)", default=goal.scheduled_end or "")
    session.dispatch(IntentKind.EDIT_GOAL, {"goal_id": goal.id, **changes})
    render_plan(session.snapshot().plan)


def cmd_rm(session: GoalSession):
    plan = session.snapshot().plan
    render_plan(plan)
    goal_id = ask_goal_number(plan)
    if Confirm.ask("Remove this goal?"):
        session.dispatch(IntentKind.REMOVE_GOAL, {"goal_id": goal_id})


def cmd_import(session: GoalSession):
    file_path = ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    day_text = ask("Date (YYYY-MM-DD)", default=session.snapshot().plan.date.isoformat())
    day = date.fromisoformat(day_text)
    if day != session.snapshot().plan.date:
        result = import_goals(session.store, day, file_path)
        console.print(f"[green]Imported {result['imported']} goal(s) into {day.isoformat()}[/green]")
        for rejected in result["rejected"]:
            console.print(f"  [yellow]skipped:[/yellow] {rejected}")
        return
    imported = 0
    for entry in parse_goal_entries(file_path):
        try:
            session.dispatch(IntentKind.ADD_GOAL, entry)
            imported += 1
        except GoalUnboxError as e:
            console.print(f"  [yellow]skipped:[/yellow] {entry['description'][:40]} ({e})")
    console.print(f"[green]Imported {imported} goal(s) into today's plan[/green]")


def cmd_code(session: GoalSession):
    code = ask("Code (or path to a file containing it)")
    render_status(session.dispatch(IntentKind.SUBMIT_CODE, {"image": code}))


def cmd_start(session: GoalSession):
    plan = session.snapshot().plan
    render_plan(plan)
    choice = ask("Goal # (or 'n' for a one-off goal)")
    if choice.lower() == "n":
        description = ask("Description")
        minutes = ask("Time limit in minutes (blank for none)", default="")
        payload = {
            "description": description,
            "subject": ask("Subject", default=""),
            "time_limit": timedelta(minutes=int(minutes)) if minutes else None,
        }
        if minutes:
            payload["consequence"] = ask("Consequence if time runs out (blank for none)", default="")
    else:
        goals = sort_goals(plan.goals)
        if not choice.isdigit() or not 1 <= int(choice) <= len(goals):
            console.print("[red]No such goal.[/red]")
            return
        goal = goals[int(choice) - 1]
        payload = {"goal_id": goal.id}
        if goal.planned_duration:
            payload["consequence"] = ask("Consequence if time runs out (blank for none)", default="")
    render_status(session.dispatch(IntentKind.START_GOAL, payload))
    cmd_code(session)


def cmd_proof(session: GoalSession):
    proof = ask("Describe your proof (or a path to it)")
    render_status(session.dispatch(IntentKind.SUBMIT_PROOF, {"proof": proof}))


def cmd_ask(session: GoalSession):
    message = ask("Message to the verifier")
    render_status(session.dispatch(IntentKind.FOLLOW_UP, {"message": message}))


def cmd_skip(session: GoalSession):
    snap = session.snapshot()
    if not Confirm.ask(f"Skip this goal? {snap.skips_left} skip(s) left this week"):
        return
    render_status(session.dispatch(IntentKind.SKIP_GOAL))
    cmd_code(session)


def cmd_abandon(session: GoalSession):
    if Confirm.ask("Abandon this goal and remove it from today's plan?"):
        render_status(session.dispatch(IntentKind.ABANDON_GOAL))


def cmd_pick(session: GoalSession):
    snap = session.snapshot()
    pending = DailyPlan(date=snap.plan.date, goals=tuple(snap.plan.pending()))
    render_plan(pending, title="Pending goals")
    goal_id = ask_goal_number(pending)
    render_status(session.dispatch(IntentKind.PICK_NEXT_GOAL, {"goal_id": goal_id}))
    cmd_code(session)


def cmd_wait(session: GoalSession):
    """Tick once a second until the running countdown finishes or Ctrl-C."""
    start = session.snapshot()
    if not start.countdowns:
        console.print("[dim]Nothing is counting down.[/dim]")
        return
    try:
        with console.status("") as status:
            while True:
                snap = session.tick()
                if snap.state != start.state or not snap.countdowns:
                    break
                kind, remaining = min(snap.countdowns.items(), key=lambda kv: kv[1])
                status.update(f"{kind.value.replace('_', ' ')}: {format_countdown(remaining)}")
                time.sleep(1)
    except KeyboardInterrupt:
        pass
    render_status(session.snapshot())


def cmd_history(session: GoalSession):
    session.dispatch(IntentKind.SHOW_HISTORY)
    try:
        stats = get_weekly_stats(session.store, session.snapshot().plan.date)
        color = get_progress_color(stats["completion_rate"])
        console.print(Panel(
            f"Completed [bold]{stats['goals_completed']}[/bold] of {stats['goals_planned']} planned goals "
            f"([{color}]{stats['completion_rate']}% {stats['label']}[/{color}])\n"
            f"Skipped: {stats['goals_skipped']}  |  Reflections: {stats['reflections']}  |  "
            f"Focus time: {format_duration(stats['focus_time'])}",
            title=f"Week of {stats['week_start'].isoformat()}", border_style="blue",
        ))
        table = Table(title="History")
        table.add_column("ID", justify="right")
        table.add_column("Finished")
        table.add_column("Goal")
        table.add_column("Duration", justify="right")
        table.add_column("How")
        for record in recent_history(session.store, limit=20):
            table.add_row(
                str(record.id), record.end_time.strftime("%a %d %b %H:%M"), record.goal_summary or "",
                format_duration(record.duration), record.completion_reason.value,
            )
        console.print(table)
        record_id = ask("Delete entry ID (blank to go back)", default="")
        if record_id.isdigit() and Confirm.ask(f"Delete entry {record_id}?"):
            delete_record(session.store, int(record_id))
            console.print("[green]Deleted.[/green]")
    finally:
        session.dispatch(IntentKind.BACK)


def cmd_week(session: GoalSession):
    session.dispatch(IntentKind.SHOW_WEEK)
    try:
        while True:
            for plan in session.week_plans():
                if plan.goals:
                    render_plan(plan)
                else:
                    console.print(f"[dim]{plan.date.strftime('%A %d %B')}: nothing planned[/dim]")
            move = ask("[n]ext week, [p]revious week, [b]ack", choices=["n", "p", "b"], default="b")
            if move == "b":
                break
            session.dispatch(IntentKind.NAVIGATE_WEEK, {"direction": "next" if move == "n" else "prev"})
    finally:
        session.dispatch(IntentKind.BACK)


def cmd_commit(session: GoalSession):
    snap = session.snapshot()
    commitment = snap.streak.commitment
    if commitment is None:
        text = ask("What do you commit to today?")
        session.dispatch(IntentKind.SET_COMMITMENT, {"text": text})
        console.print("[green]Commitment set.[/green]")
    elif not commitment.completed:
        if Confirm.ask(f"Did you keep your commitment: '{commitment.text}'?"):
            snap = session.dispatch(IntentKind.COMPLETE_COMMITMENT)
            console.print(f"[green]Streak: {snap.streak.current_streak}[/green]")
    else:
        console.print(f"[green]Commitment kept:[/green] {commitment.text}")


COMMANDS = {
    "today": cmd_today,
    "add": cmd_add,
    "edit": cmd_edit,
    "rm": cmd_rm,
    "import": cmd_import,
    "start": cmd_start,
    "code": cmd_code,
    "proof": cmd_proof,
    "ask": cmd_ask,
    "skip": cmd_skip,
    "abandon": cmd_abandon,
    "pick": cmd_pick,
    "wait": cmd_wait,
    "history": cmd_history,
    "week": cmd_week,
    "commit": cmd_commit,
}


def run_command(session: GoalSession, choice: str) -> bool:
    """Run one menu command. Returns False when the user wants to quit."""
    if choice in ("quit", "exit", "q"):
        return False
    command = COMMANDS.get(choice)
    if command is None:
        console.print("[red]Unknown command. Try again.[/red]")
        return True
    try:
        command(session)
    except CommandCancelled:
        console.print("[dim]Cancelled.[/dim]")
    except GoalUnboxError as e:
        console.print(f"[red]{e}[/red]")
    return True


def main():
    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    level = SqliteStore(db_path).get_setting("log_level", "WARNING")
    setup_logger(level=level, log_file=DEFAULT_LOG_PATH)
    session = build_session(db_path, DEFAULT_CONFIG_PATH)
    session.start_ticker()

    show_welcome()
    cmd_today(session)

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="today").strip().lower()
        try:
            if not run_command(session, choice):
                console.print("[dim]See you tomorrow.[/dim]")
                break
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
    session.stop_ticker()


if __name__ == "__main__":
    main()
