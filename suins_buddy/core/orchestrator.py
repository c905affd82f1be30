"""
Conversation handling for one Telegram update.

Each chat's updates are serialized by `subscriber_locks`; different chats run
concurrently. Handlers receive the current immutable SessionState and return the
next one; the dispatcher persists it when it changed. A handler returning None
has already dealt with the stored session itself.

States (see state_machine):
    Idle --"Search names for address"--> AwaitingAddress --text--> Idle
    Idle --"Search single name"--------> AwaitingName    --text--> Idle
Free text only means something in the two Awaiting states; the wait is cleared
(and saved) before any lookup runs, so a failed lookup never leaves a chat stuck.
"""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from suins_buddy.api.schemas import CallbackQuery, Message, MessageReactionUpdated, Update
from suins_buddy.core import actions as a
from suins_buddy.core import render
from suins_buddy.core import state_machine as sm
from suins_buddy.core.urgency import days_left, describe_next_notification
from suins_buddy.errors import InvalidInput, LookupUnavailable, StoreUnavailable, TransportFailure
from suins_buddy.observability.logging import log
from suins_buddy.store import subscription_repo
from suins_buddy.store.models import NameRecord, SessionState
from suins_buddy.store.session_repo import clear_session, load_session, save_session
from suins_buddy.suins.client import get_resolver
from suins_buddy.suins.names import format_name, is_valid_address, normalize_name
from suins_buddy.telegram.client import get_telegram
from suins_buddy.telegram.keyboard import InlineKeyboard
from suins_buddy.utils.lock import subscriber_locks
from suins_buddy.utils.time import now_ms

THUMBS_UP = "👍"


@dataclass
class _Ctx:
    chat_id: str
    callback_id: Optional[str] = None
    answered: bool = False


async def _reply(ctx: _Ctx, text: str, keyboard: Optional[InlineKeyboard] = None) -> None:
    await get_telegram().send_message(ctx.chat_id, text, keyboard)


async def _answer(ctx: _Ctx, text: Optional[str] = None) -> None:
    """Acknowledge a button press once; a lost acknowledgement is not worth failing over."""
    if not ctx.callback_id or ctx.answered:
        return
    ctx.answered = True
    try:
        await get_telegram().answer_callback_query(ctx.callback_id, text)
    except TransportFailure as e:
        log(event="callback_answer_failed", chatId=ctx.chat_id, error=str(e)[:300])


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def _on_start(ctx: _Ctx, session: SessionState) -> SessionState:
    if await subscription_repo.is_registered(ctx.chat_id):
        await _reply(ctx, render.GREETING_RETURNING, render.default_keyboard())
    else:
        base = render.GREETING_AFTER_CONFUSION if session.triedUnknownCommand else render.GREETING_NEW
        await _reply(ctx, f"{base}\n\nWhat would you like me to do?", render.default_keyboard())
    # Every top-level start begins from a clean session.
    return SessionState()


async def _on_help(ctx: _Ctx, session: SessionState) -> SessionState:
    await _reply(ctx, render.HELP_TEXT)
    return session


async def _on_privacy(ctx: _Ctx, session: SessionState) -> SessionState:
    await _reply(ctx, render.PRIVACY_TEXT)
    return session


async def _on_developer_info(ctx: _Ctx, session: SessionState) -> SessionState:
    await _reply(ctx, render.DEVELOPER_INFO_TEXT)
    return session


async def _on_delete(ctx: _Ctx, session: SessionState) -> Optional[SessionState]:
    erased = await subscription_repo.erase_all(ctx.chat_id)
    await clear_session(ctx.chat_id)
    log(event="subscriber_erased", chatId=ctx.chat_id, names=len(erased))
    await _reply(ctx, render.DELETED_TEXT)
    # Session is gone; nothing to persist.
    return None


COMMANDS: Dict[str, Callable[[_Ctx, SessionState], Awaitable[Optional[SessionState]]]] = {
    "start": _on_start,
    "help": _on_help,
    "privacy": _on_privacy,
    "developer_info": _on_developer_info,
    "delete": _on_delete,
}


def _command_of(text: str) -> Optional[str]:
    if not text.startswith("/"):
        return None
    head = text.split()[0][1:]
    return head.split("@", 1)[0].lower()


# ---------------------------------------------------------------------------
# Shared lookups / rendering
# ---------------------------------------------------------------------------

async def _owner_of(record: NameRecord) -> Optional[str]:
    if not record.nftId:
        return None
    try:
        return await get_resolver().resolve_owner(record.nftId)
    except LookupUnavailable as e:
        log(event="owner_lookup_failed", name=record.name, error=str(e)[:300])
        return None


async def _send_owned_names(ctx: _Ctx, address: str) -> None:
    """Drains every page before rendering anything."""
    names = await get_resolver().list_owned_names(address)
    for chunk in render.owned_names_messages(address, names, now_ms()):
        await _reply(ctx, chunk)


async def _tracker_info(chat_id: str, name: str, now: int) -> str:
    try:
        record = await get_resolver().lookup_by_name(name)
    except LookupUnavailable:
        return " (status unavailable)"
    if record is None or not record.expiresAtMs:
        return " (not registered)"

    days = days_left(record.expiresAtMs, now)
    last = await subscription_repo.get_notified_level(chat_id, name)
    nxt = describe_next_notification(days, last)
    if nxt == "expired":
        return " (expired)"
    if nxt == "done":
        return f" ({days}d left, all reminders sent)"
    return f" ({days}d left, notify {nxt})"


# ---------------------------------------------------------------------------
# Free-text input
# ---------------------------------------------------------------------------

async def _on_name_input(ctx: _Ctx, session: SessionState, text: str) -> SessionState:
    if not text:
        raise InvalidInput("Didn't get that. Try sending text next time?")
    name = normalize_name(text)
    if not name:
        raise InvalidInput("That doesn't look like a SuiNS name. Use /start to search again")

    record = await get_resolver().lookup_by_name(name)
    if record is None:
        await _reply(ctx, render.not_taken_text())
        return session

    owner = await _owner_of(record)
    await _reply(ctx, render.name_details(record, owner), render.name_details_keyboard())
    return session.with_pending_track(record)


async def _on_address_input(ctx: _Ctx, session: SessionState, text: str) -> SessionState:
    if not text:
        raise InvalidInput("Failed to read text. Try again, but this time be nice")

    if text.lower().startswith("0x"):
        if not is_valid_address(text):
            raise InvalidInput("This doesn't look like a valid Sui address. Use /start to try again")
        address = text.lower()
        await _reply(ctx, "Okay, this is a sui address, gut. Let me fetch all names for you")
        await _send_owned_names(ctx, address)
        await _reply(ctx, "Are you happy now, luv? Give me a thumbs up", render.default_keyboard())
        return session

    name = normalize_name(text)
    if not name:
        raise InvalidInput("That's neither an address nor a SuiNS name. Use /start to try again")

    record = await get_resolver().lookup_by_name(name)
    if record is None:
        await _reply(ctx, render.not_taken_text())
        return session

    if not record.targetAddress:
        if not record.nftId:
            await _reply(
                ctx,
                "This appears to be a leaf name without owner. Try searching for a higher level name? /start",
            )
            return session

        owner = await get_resolver().resolve_owner(record.nftId)
        if owner:
            await _reply(ctx, "Name is already taken but not configured. Want to see owner's names?")
        else:
            await _reply(
                ctx,
                "Name is already taken but not configured. The object is either wrapped or used in a dapp",
            )
        session = session.with_recent_lookup(owner)
        await _reply(ctx, "What now?", render.owner_followup_keyboard(bool(owner)))
        return session

    await _send_owned_names(ctx, record.targetAddress)
    await _reply(ctx, "This is it! Give me a thumbs up if this is helpful", render.default_keyboard())
    return session


async def _on_text(ctx: _Ctx, session: SessionState, text: str) -> SessionState:
    waiting, session = session.consume_input()

    if waiting is sm.IDLE:
        kb = InlineKeyboard().button("Start", a.Restart())
        await _reply(ctx, render.FALLBACK_TEXT, kb)
        return session.mark_confused()

    # One-shot: the wait is gone even if the lookup below fails.
    await save_session(ctx.chat_id, session)
    text = (text or "").strip()
    if waiting == sm.AWAITING_NAME:
        return await _on_name_input(ctx, session, text)
    return await _on_address_input(ctx, session, text)


# ---------------------------------------------------------------------------
# Button actions
# ---------------------------------------------------------------------------

async def _act_search_address(ctx: _Ctx, session: SessionState, action: a.Action) -> SessionState:
    await _answer(ctx)
    await _reply(ctx, render.PROMPT_ADDRESS)
    return session.awaiting(sm.AWAITING_ADDRESS)


async def _act_search_name(ctx: _Ctx, session: SessionState, action: a.Action) -> SessionState:
    await _answer(ctx)
    await _reply(ctx, render.PROMPT_NAME)
    return session.awaiting(sm.AWAITING_NAME)


async def _act_search_recent_owner(ctx: _Ctx, session: SessionState, action: a.Action) -> SessionState:
    owner, session = session.take_recent_lookup()
    if not owner:
        # Nothing remembered (expired session): ask for the address instead.
        return await _act_search_address(ctx, session, action)

    await _answer(ctx, "Looking up names...")
    await save_session(ctx.chat_id, session)
    await _send_owned_names(ctx, owner)
    await _reply(ctx, "This is it! Give me a thumbs up if this is helpful", render.default_keyboard())
    return session


async def _act_show_trackers(ctx: _Ctx, session: SessionState, action: a.Action) -> SessionState:
    await _answer(ctx, "Looking up stored trackers...")
    names = await subscription_repo.list_tracked(ctx.chat_id)
    now = now_ms()
    infos = await asyncio.gather(*(_tracker_info(ctx.chat_id, n, now) for n in names))
    rows: List[Tuple[str, str]] = list(zip(names, infos))

    kb = render.trackers_keyboard(names) if names else render.default_keyboard()
    await _reply(ctx, render.trackers_text(rows), kb)
    return session.with_listed_names(names)


async def _act_another_search(ctx: _Ctx, session: SessionState, action: a.Action) -> SessionState:
    await _answer(ctx)
    await _reply(ctx, "What now?", render.default_keyboard())
    return session


async def _act_restart(ctx: _Ctx, session: SessionState, action: a.Action) -> SessionState:
    await _answer(ctx)
    return await _on_start(ctx, session)


async def _act_track_pending(ctx: _Ctx, session: SessionState, action: a.Action) -> SessionState:
    record, cleared = session.take_pending_track()
    if record is None or not record.name:
        # Stale button or lost session: tell the user, touch nothing.
        await _answer(ctx, "Something is off")
        return session

    if not await subscription_repo.track(ctx.chat_id, record.name):
        await _answer(ctx, "Already tracking this name")
        return cleared

    log(event="name_tracked", chatId=ctx.chat_id, name=record.name)
    await _answer(ctx, "Tracker set")
    await _reply(
        ctx,
        f"Now tracking {format_name(record.name)}. You'll be notified when it's nearing expiration.",
        render.tracked_keyboard(),
    )
    return cleared


async def _stopped(ctx: _Ctx, name: str) -> None:
    log(event="name_untracked", chatId=ctx.chat_id, name=name)
    await _answer(ctx, "Tracker removed!")
    await _reply(ctx, f"No longer tracking {format_name(name)}. Continue or use /start", render.default_keyboard())


async def _act_stop_by_index(ctx: _Ctx, session: SessionState, action: a.StopTrackingByIndex) -> SessionState:
    names = session.lastListedNames
    if names is None:
        raise InvalidInput("Unable to get session data, try again?")
    if not (0 <= action.index < len(names)):
        raise InvalidInput("Name not found in session")

    name = names[action.index]
    await subscription_repo.untrack(ctx.chat_id, name)
    await _stopped(ctx, name)
    return session


async def _act_stop_by_name(ctx: _Ctx, session: SessionState, action: a.StopTrackingByName) -> SessionState:
    name = normalize_name(action.name)
    if not name:
        raise InvalidInput("Name not found")

    # A later re-track starts the ladder from scratch.
    await subscription_repo.untrack(ctx.chat_id, name, forget_history=True)
    await _stopped(ctx, name)
    return session


ACTION_HANDLERS = {
    a.SearchByAddress: _act_search_address,
    a.SearchByName: _act_search_name,
    a.SearchRecentOwner: _act_search_recent_owner,
    a.ShowTrackers: _act_show_trackers,
    a.AnotherSearch: _act_another_search,
    a.Restart: _act_restart,
    a.TrackPending: _act_track_pending,
    a.StopTrackingByIndex: _act_stop_by_index,
    a.StopTrackingByName: _act_stop_by_name,
}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def _chat_id_of(update: Update) -> Optional[str]:
    if update.message is not None:
        return str(update.message.chat.id)
    if update.callback_query is not None:
        cq = update.callback_query
        if cq.message is not None:
            return str(cq.message.chat.id)
        if cq.from_user is not None:
            return str(cq.from_user.id)
        return None
    if update.message_reaction is not None:
        return str(update.message_reaction.chat.id)
    return None


async def _dispatch_message(ctx: _Ctx, session: SessionState, message: Message) -> Optional[SessionState]:
    text = message.text or ""
    command = _command_of(text.strip())
    if command in COMMANDS:
        return await COMMANDS[command](ctx, session)
    return await _on_text(ctx, session, text)


async def _dispatch_callback(ctx: _Ctx, session: SessionState, cq: CallbackQuery) -> SessionState:
    action = a.parse_action(cq.data or "")
    handler = ACTION_HANDLERS[type(action)]
    return await handler(ctx, session, action)


async def _on_reaction(ctx: _Ctx, reaction: MessageReactionUpdated) -> None:
    if not any(r.emoji == THUMBS_UP for r in reaction.new_reaction):
        return
    await _reply(ctx, random.choice(render.REACTION_REPLIES))


async def _report_failure(ctx: _Ctx, text: str) -> None:
    """Corrective or apologetic reply; button presses get it as a toast."""
    try:
        if ctx.callback_id and not ctx.answered:
            await _answer(ctx, text)
        else:
            await _reply(ctx, text)
    except TransportFailure as e:
        log(event="reply_failed", chatId=ctx.chat_id, error=str(e)[:300])


async def handle_update(update: Update) -> None:
    chat_id = _chat_id_of(update)
    if chat_id is None:
        log(event="update_ignored", updateId=update.update_id, reason="no_chat")
        return

    ctx = _Ctx(chat_id=chat_id, callback_id=update.callback_query.id if update.callback_query else None)

    if update.message_reaction is not None:
        try:
            await _on_reaction(ctx, update.message_reaction)
        except TransportFailure as e:
            log(event="reply_failed", chatId=chat_id, error=str(e)[:300])
        return

    if update.message is None and update.callback_query is None:
        return

    async with subscriber_locks.hold(chat_id):
        try:
            session = await load_session(chat_id)
            if update.callback_query is not None:
                new_session = await _dispatch_callback(ctx, session, update.callback_query)
            else:
                new_session = await _dispatch_message(ctx, session, update.message)
            if new_session is not None and new_session != session:
                await save_session(chat_id, new_session)
            await _answer(ctx)
        except InvalidInput as e:
            log(event="invalid_input", chatId=chat_id, reply=e.reply)
            await _report_failure(ctx, e.reply)
        except LookupUnavailable as e:
            log(event="lookup_unavailable", chatId=chat_id, error=str(e)[:300])
            await _report_failure(ctx, render.SOMETHING_OFF)
        except StoreUnavailable as e:
            log(event="store_unavailable", chatId=chat_id, error=str(e)[:300])
            await _report_failure(ctx, render.STORE_DOWN)
        except TransportFailure as e:
            log(event="reply_failed", chatId=chat_id, method=e.method, error=str(e)[:300])
