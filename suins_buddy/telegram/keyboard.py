from typing import Any, Dict, List

from suins_buddy.core.actions import Action, encode_action


class InlineKeyboard:
    """Builder for Telegram inline keyboards whose buttons carry tagged actions."""

    def __init__(self) -> None:
        self._rows: List[List[Dict[str, str]]] = [[]]

    def button(self, text: str, action: Action) -> "InlineKeyboard":
        self._rows[-1].append({"text": text, "callback_data": encode_action(action)})
        return self

    def row(self) -> "InlineKeyboard":
        if self._rows[-1]:
            self._rows.append([])
        return self

    def to_markup(self) -> Dict[str, Any]:
        return {"inline_keyboard": [r for r in self._rows if r]}

    def __len__(self) -> int:
        return sum(len(r) for r in self._rows)
