import pytest

from suins_buddy.core import actions as a
from suins_buddy.errors import InvalidInput
from suins_buddy.telegram.keyboard import InlineKeyboard


@pytest.mark.parametrize("data,expected", [
    ("track-address", a.SearchByAddress()),
    ("track-name", a.SearchByName()),
    ("track-address:recent", a.SearchRecentOwner()),
    ("my-trackers", a.ShowTrackers()),
    ("another-search", a.AnotherSearch()),
    ("start", a.Restart()),
    ("notify-name", a.TrackPending()),
    ("stop-tracking-name:3", a.StopTrackingByIndex(index=3)),
    ("stop-tracking-name:inline:alice.sui", a.StopTrackingByName(name="alice.sui")),
])
def test_parse_known_payloads(data, expected):
    assert a.parse_action(data) == expected


@pytest.mark.parametrize("data", [
    "",
    "explode",
    "stop-tracking-name:",
    "stop-tracking-name:-1",
    "stop-tracking-name:abc",
    "stop-tracking-name:inline:",
])
def test_unknown_payloads_are_invalid_input(data):
    with pytest.raises(InvalidInput) as exc:
        a.parse_action(data)
    assert "/start" in exc.value.reply


def test_every_variant_has_a_wire_form():
    samples = {
        a.StopTrackingByIndex: a.StopTrackingByIndex(index=0),
        a.StopTrackingByName: a.StopTrackingByName(name="bob.sui"),
    }
    for cls in a.ALL_ACTIONS:
        action = samples.get(cls) or cls()
        assert a.parse_action(a.encode_action(action)) == action


def test_encode_rejects_oversized_callback_data():
    with pytest.raises(ValueError):
        a.encode_action(a.StopTrackingByName(name="x" * 60 + ".sui"))


def test_keyboard_rows_and_markup():
    kb = (
        InlineKeyboard()
        .button("One", a.SearchByAddress())
        .button("Two", a.SearchByName()).row()
        .button("Three", a.ShowTrackers()).row()
    )
    assert len(kb) == 3
    assert kb.to_markup() == {
        "inline_keyboard": [
            [
                {"text": "One", "callback_data": "track-address"},
                {"text": "Two", "callback_data": "track-name"},
            ],
            [{"text": "Three", "callback_data": "my-trackers"}],
        ]
    }
