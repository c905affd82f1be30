# Conversation states (per chat). Values are what SessionState.waitingFor persists.

# Interaction Surface: main menu / command handling
# Free text here is unmatched and gets the fallback reply
IDLE = None

# Interaction Surface: "Search names for address"
# Next free text is a raw address or a name whose target/owner is listed
AWAITING_ADDRESS = "track-address:address"

# Interaction Surface: "Search single name"
# Next free text is a name; result can be tracked
AWAITING_NAME = "track-name:name"

WAIT_STATES = (AWAITING_ADDRESS, AWAITING_NAME)


def state_label(waiting_for) -> str:
    if waiting_for == AWAITING_ADDRESS:
        return "AwaitingAddress"
    if waiting_for == AWAITING_NAME:
        return "AwaitingName"
    return "Idle"
