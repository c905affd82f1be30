"""
Reply texts and keyboards. Telegram HTML parse mode; anything user- or
chain-supplied goes through `html.escape`.
"""
from __future__ import annotations

import html
from typing import List, Optional, Sequence, Tuple

from suins_buddy.core import actions as a
from suins_buddy.core.urgency import UrgencyLevel
from suins_buddy.observability.logging import log
from suins_buddy.settings import settings
from suins_buddy.store.models import NameRecord, OwnedName
from suins_buddy.suins.names import format_name, short_address
from suins_buddy.telegram.keyboard import InlineKeyboard
from suins_buddy.utils.time import DAY_MS, format_utc

HELP_TEXT = (
    "Hi there!\n\n"
    "Suins Buddy is there to help you track your SuiNS names' expiration dates and not miss the "
    "opportunity to renew. It can also be used to try and catch someone else's name if its nearing "
    "expiration - fair game!\n"
    "\nTo use it simply press /start, the rest is self-explanatory"
    "\nOther available commands are:\n- /privacy\n- /developer_info\n- /delete\n- /help (this message)"
)

DEVELOPER_INFO_TEXT = (
    "Created by Sui Potatoes\n"
    "Contact: support@example.com\n"
    "GitHub: https://github.com/sui-potatoes\n"
    "Source Code: https://github.com/sui-potatoes/suins-bot\n"
)

PRIVACY_TEXT = """This bot stores only the minimum data required to function.

What is stored:
• Chat ID (used to send reminders and notifications)
• Tracked names you explicitly subscribe to
• The last reminder sent per name (expires after 60 days)

What is NOT stored:
• Message history
• Search queries
• User profiles or personal identifiers beyond chat ID

Data usage:
• Data is used only to provide reminders and tracking features
• No data is shared with third parties
• No payments or advertising are involved

Data removal:
• You can request deletion of your data at any time, use /delete
• Tracked items are removed immediately upon request
"""

GREETING_RETURNING = "Good to see you again. What shall we do?"
GREETING_AFTER_CONFUSION = "I'm glad you learned how to interact with me!"
GREETING_NEW = (
    "Hello, friend. I'm your SuiNS buddy - I can track yours and others' names "
    "and notify when they're nearing expiration"
)
FALLBACK_TEXT = "I'm sorry, I'm a bot and the only command I understand is /start; try hitting this button?"
DELETED_TEXT = (
    "All name tracking records are deleted. If you clear this chat, there will be no trace of us "
    "ever interacting"
)
PROMPT_ADDRESS = "Enter an address either as a reply or in a message. Either plain address, or a suins name prefixed with <code>@</code> sign"
PROMPT_NAME = "Enter a name prefixed with <code>@</code> sign or ending with <code>.sui</code>"
SOMETHING_OFF = "Something is off, I can't reach the Sui network right now. Try again in a bit? /start"
STORE_DOWN = "I can't reach my storage right now. Please try again later."
REACTION_REPLIES = (
    "I think we can be friends",
    "Yay, you're great too",
    "How sweet of you",
    "I live to serve",
    "I like you too!",
    "Don't forget to tell your friends!",
)

BOT_COMMANDS = [
    {"command": "start", "description": "Start the bot"},
    {"command": "help", "description": "Show help information"},
    {"command": "privacy", "description": "Privacy policy"},
    {"command": "developer_info", "description": "Developer contact information"},
    {"command": "delete", "description": "Delete all your tracking data"},
]


def _e(value) -> str:
    return html.escape(str(value), quote=True)


def _link(label: str, url: str) -> str:
    return f'<a href="{_e(url)}">{_e(label)}</a>'


def account_link(address: str) -> str:
    return _link(short_address(address), f"{settings.EXPLORER_URL}/account/{address}")


def object_link(object_id: str, label: Optional[str] = None) -> str:
    return _link(label or short_address(object_id), f"{settings.EXPLORER_URL}/object/{object_id}")


def renew_link(label: str = "suins.io") -> str:
    return _link(label, settings.RENEW_URL)


# --- keyboards ---

def default_keyboard() -> InlineKeyboard:
    return (
        InlineKeyboard()
        .button("Search names for address", a.SearchByAddress()).row()
        .button("Search single name", a.SearchByName()).row()
        .button("My trackers", a.ShowTrackers())
    )


def notification_keyboard(name: str) -> InlineKeyboard:
    kb = InlineKeyboard()
    try:
        kb.button(f"Stop tracking {format_name(name)}", a.StopTrackingByName(name=name)).row()
    except ValueError:
        # Name too long for callback_data; the trackers list still offers removal.
        log(event="notification_stop_button_skipped", name=name)
    return kb.button("View all trackers", a.ShowTrackers())


def name_details_keyboard() -> InlineKeyboard:
    return (
        InlineKeyboard()
        .button("Track expiration", a.TrackPending())
        .button("Another search", a.AnotherSearch()).row()
        .button("My trackers", a.ShowTrackers())
    )


def tracked_keyboard() -> InlineKeyboard:
    return (
        InlineKeyboard()
        .button("My trackers", a.ShowTrackers()).row()
        .button("Search another", a.AnotherSearch())
    )


def owner_followup_keyboard(has_owner: bool) -> InlineKeyboard:
    kb = InlineKeyboard()
    if has_owner:
        kb.button("Track names for this address", a.SearchRecentOwner()).row()
    return kb.button("Start over", a.Restart())


def trackers_keyboard(names: Sequence[str]) -> InlineKeyboard:
    kb = InlineKeyboard()
    for i, name in enumerate(names):
        kb.button(f"Stop tracking {format_name(name)}", a.StopTrackingByIndex(index=i)).row()
    return kb.button("Search names or accounts", a.AnotherSearch())


# --- notifications ---

def notification_message(name: str, level: UrgencyLevel, days: int, expires_at_ms: int) -> str:
    """One template per tier."""
    shown = f"<b>{_e(format_name(name))}</b>"
    date_str = _e(format_utc(expires_at_ms))
    level = UrgencyLevel(level)

    if level is UrgencyLevel.EXPIRED:
        return (
            f"🚨 <b>EXPIRED</b>: Your name {shown} has expired!\n\nExpired on: {date_str}\n\n"
            f"Renew it now at {renew_link()} before someone else registers it!"
        )
    if level is UrgencyLevel.D1:
        return (
            f"🔴 <b>URGENT</b>: Your name {shown} expires TOMORROW!\n\nExpires: {date_str}\n\n"
            f"Renew at {renew_link()}"
        )
    if level is UrgencyLevel.D3:
        return (
            f"🟠 <b>Warning</b>: Your name {shown} expires in {days} days!\n\nExpires: {date_str}\n\n"
            f"Renew at {renew_link()}"
        )
    if level is UrgencyLevel.D14:
        return (
            f"🟡 <b>Reminder</b>: Your name {shown} expires in {days} days.\n\nExpires: {date_str}\n\n"
            f"Consider renewing at {renew_link()}"
        )
    return (
        f"📅 <b>Heads up</b>: Your name {shown} expires in {days} days.\n\nExpires: {date_str}\n\n"
        f"You can renew anytime at {renew_link()}"
    )


# --- search results ---

def not_taken_text() -> str:
    return f"This name is not taken. {renew_link('Want to get it?')}\n\nUse /start to search again"


def name_details(record: NameRecord, owner: Optional[str]) -> str:
    lines = [f"Name: <code>{_e(format_name(record.name))}</code>"]
    if record.expiresAtMs:
        lines.append(f"Expires at: {_e(format_utc(record.expiresAtMs))}")
    else:
        lines.append("Expires at: unknown")
    lines.append(f"Owner: {account_link(owner) if owner else 'unable to determine'}")
    lines.append(f"Target address: {account_link(record.targetAddress) if record.targetAddress else 'not set'}")
    lines.append(f"Object ID: {object_link(record.nftId) if record.nftId else 'none (leaf record)'}")
    return "\n".join(lines)


def owned_names_messages(address: str, names: List[OwnedName], now_ms: int) -> List[str]:
    """
    Sorted by expiration, split into chunks of NAMES_PER_MESSAGE lines so a
    single reply stays under Telegram's message size limit.
    """
    ordered = sorted(names, key=lambda n: n.expiresAtMs)
    per_message = max(1, int(settings.NAMES_PER_MESSAGE))
    header = f"Here are all the names owned by <code>{_e(address)}</code>\n\n"
    footer = f"\nTotal: {len(ordered)} names"

    lines = []
    for owned in ordered:
        days = (owned.expiresAtMs - now_ms) / DAY_MS
        expiration = "already expired" if days < 0 else f"expires in {days:.0f} days"
        lines.append(f"- {object_link(owned.objectId, format_name(owned.name))} {expiration}")

    chunks = ["\n".join(lines[i:i + per_message]) for i in range(0, len(lines), per_message)]
    if not chunks:
        return [header + "No names found." + footer]
    chunks[0] = header + chunks[0]
    chunks[-1] = chunks[-1] + "\n" + footer
    return chunks


def trackers_text(rows: List[Tuple[str, str]]) -> str:
    if not rows:
        return "You're not tracking any names yet. Search for a name to start tracking it."
    out = "Your tracked names:\n\n"
    for name, info in rows:
        out += f"- {_e(format_name(name))}{_e(info)}\n"
    return out
