"""
HomeSync — Telegram Bot.

Telegram hosts the engine: its JobQueue is the 1-second heartbeat that
drives Scheduler.tick(), fired triggers are pushed to every allowed chat
with a Dismiss button, and a handful of commands expose the read-only
calendar queries plus a structured /intent entry point for an external
command parser.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import json
import logging
import sys
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)

from src.config import settings
from src.core.action_service import ActionService, ResponseKind, format_duration
from src.core.calendar_index import parse_month
from src.core.household import HouseholdError
from src.core.triggers import Trigger, TriggerKind
from src.data.db import StorageError

if TYPE_CHECKING:
    from src.core.scheduler import Scheduler
    from src.data.db import StateDB
    from src.data.models import Event
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_DISMISS_PATTERN = r"^dismiss:(alarm|timer|reminder):\d+$"


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Trigger rendering
# ---------------------------------------------------------------------------


def format_trigger(trigger: Trigger) -> str:
    """Human-readable notification text for a fired trigger."""
    payload = trigger.payload
    if trigger.kind is TriggerKind.ALARM_RINGING:
        return f"⏰ Alarm: *{payload.label}* ({payload.time})"
    if trigger.kind is TriggerKind.TIMER_FINISHED:
        return (
            f"⌛ Timer finished: *{payload.label}* "
            f"({format_duration(payload.duration_seconds)})"
        )
    return f"🔔 Reminder: *{payload.title}*"


def dismiss_keyboard(trigger: Trigger) -> InlineKeyboardMarkup:
    data = f"dismiss:{trigger.kind.value}:{trigger.entity_id}"
    return InlineKeyboardMarkup([[InlineKeyboardButton("Dismiss", callback_data=data)]])


def _format_occurrences(events: list[Event], people: dict[int, str]) -> list[str]:
    lines = []
    for ev in sorted(events, key=lambda e: e.priority.rank):
        names = ", ".join(people[i] for i in ev.assignee_ids if i in people)
        mark = "✅" if ev.completed else "▫️"
        suffix = f" — {names}" if names else ""
        lines.append(f"{mark} `{ev.id}` {ev.title} [{ev.priority.value}]{suffix}")
    return lines


def _people_by_id(scheduler: Scheduler) -> dict[int, str]:
    return {p.id: p.name for p in scheduler.household.people}


# ---------------------------------------------------------------------------
# Tick job
# ---------------------------------------------------------------------------


async def _tick_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Run one scheduler tick and deliver whatever fired."""
    scheduler: Scheduler = context.bot_data["scheduler"]
    notifier: NotificationPort = context.bot_data["notifier"]

    fired = scheduler.tick()
    if not fired:
        return

    for trigger in fired:
        text = format_trigger(trigger)
        for chat_id in settings.ALLOWED_USER_IDS:
            try:
                await notifier.send_message(chat_id, text, reply_markup=dismiss_keyboard(trigger))
            except Exception as exc:
                logger.error(
                    "Failed to deliver %s %d to %d: %s",
                    trigger.kind.value, trigger.entity_id, chat_id, exc,
                )

    _save_state(context.bot_data)


def _save_state(bot_data: dict) -> None:
    db: StateDB | None = bot_data.get("db")
    if db is None:
        return
    scheduler: Scheduler = bot_data["scheduler"]
    try:
        db.save_household(scheduler.household)
        if settings.PERSIST_LEDGER:
            db.save_ledger(scheduler.ledger)
    except StorageError as exc:
        logger.error("Failed to persist state: %s", exc)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


_HELP_TEXT = (
    "*HomeSync*\n\n"
    "/today — today's chores and events\n"
    "/month [YYYY-MM] — everything in a month\n"
    "/alarms — list alarms\n"
    "/timers — list running timers\n"
    "/done <event_id> — toggle an event's completion\n"
    "/intent <json> — apply a structured command"
)


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — greet the user."""
    name = update.effective_user.first_name or "there"
    await update.message.reply_text(
        f"Hello {name}! How can I help you sync your home today?\n\n{_HELP_TEXT}",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help."""
    await update.message.reply_text(_HELP_TEXT, parse_mode="Markdown")


@authorized_only
async def cmd_today(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /today — occurrences on today's date."""
    scheduler: Scheduler = context.bot_data["scheduler"]
    today = scheduler.clock.now().date()
    events = scheduler.calendar.occurrences_on(today)

    if not events:
        await update.message.reply_text("Nothing scheduled today. 🎉")
        return

    lines = [f"*Today ({today.isoformat()}):*\n"]
    lines += _format_occurrences(events, _people_by_id(scheduler))
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_month(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /month [YYYY-MM] — the calendar index for a month."""
    scheduler: Scheduler = context.bot_data["scheduler"]

    if context.args:
        try:
            scheduler.calendar.navigate(parse_month(context.args[0]))
        except ValueError:
            await update.message.reply_text("Usage: /month YYYY-MM")
            return

    index = scheduler.calendar.index()
    month_label = scheduler.calendar.visible_month.strftime("%B %Y")
    if not index:
        await update.message.reply_text(f"Nothing scheduled in {month_label}.")
        return

    people = _people_by_id(scheduler)
    lines = [f"*{month_label}*"]
    for day, events in index.items():
        lines.append(f"\n*{day.strftime('%a %d')}*")
        lines += _format_occurrences(events, people)
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_alarms(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /alarms — list all alarms."""
    scheduler: Scheduler = context.bot_data["scheduler"]
    alarms = scheduler.household.alarms
    if not alarms:
        await update.message.reply_text("No alarms set.")
        return

    lines = ["*Alarms:*\n"]
    for a in alarms:
        days = ", ".join(d[:3] for d in a.repeat_days) if a.repeat_days else "once"
        state = "🔔 ringing" if a.ringing else ("on" if a.enabled else "off")
        lines.append(f"`{a.id}` — {a.time} {a.label} ({days}, {state})")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_timers(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /timers — list timers with remaining time."""
    scheduler: Scheduler = context.bot_data["scheduler"]
    timers = scheduler.household.timers
    if not timers:
        await update.message.reply_text("No timers running.")
        return

    lines = ["*Timers:*\n"]
    for t in timers:
        state = "done" if t.finished else format_duration(t.remaining_seconds)
        lines.append(f"`{t.id}` — {t.label}: {state}")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <id> — toggle an event's completion."""
    scheduler: Scheduler = context.bot_data["scheduler"]

    args = context.args
    if not args:
        await update.message.reply_text("Usage: /done <event_id>\nUse /today to see IDs.")
        return

    try:
        event_id = int(args[0])
    except ValueError:
        await update.message.reply_text("Invalid event ID. Use /today to see valid IDs.")
        return

    try:
        with scheduler.lock:
            event = scheduler.household.toggle_event(event_id, scheduler.clock.now())
    except HouseholdError as exc:
        await update.message.reply_text(str(exc))
        return

    verb = "done" if event.completed else "not done"
    await update.message.reply_text(f"Marked *{event.title}* as {verb}.", parse_mode="Markdown")
    _save_state(context.bot_data)


@authorized_only
async def cmd_intent(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /intent <json> — apply a structured intent from an external parser."""
    service: ActionService = context.bot_data["service"]

    raw = update.message.text.partition(" ")[2].strip()
    if not raw:
        await update.message.reply_text('Usage: /intent {"action": "create_timer", ...}')
        return

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Invalid /intent JSON: %s", exc)
        await update.message.reply_text("That isn't valid JSON.")
        return

    response = service.apply_raw(data)
    await update.message.reply_text(response.message)
    if response.kind is ResponseKind.SUCCESS:
        _save_state(context.bot_data)


# ---------------------------------------------------------------------------
# Dismiss buttons
# ---------------------------------------------------------------------------


async def _handle_dismiss_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle the inline Dismiss button on a trigger notification."""
    scheduler: Scheduler = context.bot_data["scheduler"]

    query = update.callback_query
    await query.answer()

    # Verify the user is authorized
    user = query.from_user
    if user is None or user.id not in settings.ALLOWED_USER_IDS:
        return

    _, kind, raw_id = query.data.split(":")
    entity_id = int(raw_id)

    try:
        if kind == TriggerKind.ALARM_RINGING.value:
            scheduler.dismiss_alarm(entity_id)
        elif kind == TriggerKind.TIMER_FINISHED.value:
            scheduler.dismiss_timer(entity_id)
        else:
            scheduler.dismiss_reminder(entity_id)
    except HouseholdError as exc:
        logger.info("Dismiss %s %d ignored: %s", kind, entity_id, exc)
        await query.edit_message_text("Already dismissed.")
        return

    await query.edit_message_text("Dismissed.")
    _save_state(context.bot_data)


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    scheduler: Scheduler,
    notifier: NotificationPort | None = None,
    db: StateDB | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        scheduler: The engine to drive from the JobQueue.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
        db: Optional state database; state is saved after every change.
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if notifier is None:
        from src.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    app.bot_data["scheduler"] = scheduler
    app.bot_data["service"] = ActionService(scheduler)
    app.bot_data["notifier"] = notifier
    app.bot_data["db"] = db

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("today", cmd_today))
    app.add_handler(CommandHandler("month", cmd_month))
    app.add_handler(CommandHandler("alarms", cmd_alarms))
    app.add_handler(CommandHandler("timers", cmd_timers))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler("intent", cmd_intent))
    app.add_handler(CallbackQueryHandler(_handle_dismiss_callback, pattern=_DISMISS_PATTERN))

    app.job_queue.run_repeating(
        _tick_job,
        interval=settings.TICK_INTERVAL_SECONDS,
        first=0,
        name="scheduler_tick",
    )

    logger.info(
        "Telegram bot application built with %d handlers, ticking every %.2fs",
        len(app.handlers[0]), settings.TICK_INTERVAL_SECONDS,
    )
    return app


def main() -> None:
    """Entry point: restore state, build the app and start polling."""
    from src.core.ledger import DedupeLedger
    from src.core.scheduler import Scheduler
    from src.data.db import StateDB
    from src.ports.clock_port import SystemClock

    if not settings.TELEGRAM_BOT_TOKEN or settings.TELEGRAM_BOT_TOKEN.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    db = StateDB()
    household = db.load_household()
    if not household.people:
        for name, is_adult in settings.HOUSEHOLD_MEMBERS:
            household.add_person(name, is_adult=is_adult)
    ledger = db.load_ledger() if settings.PERSIST_LEDGER else DedupeLedger()
    scheduler = Scheduler(
        household,
        SystemClock(),
        ledger=ledger,
        retention_days=settings.LEDGER_RETENTION_DAYS,
    )

    logger.info("Starting HomeSync bot...")
    app = build_app(scheduler, db=db)
    app.run_polling()


if __name__ == "__main__":
    main()
