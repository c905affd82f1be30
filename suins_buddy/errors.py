"""
Failure taxonomy shared by the conversation handlers and the sweep.

- LookupUnavailable: the record-resolution node could not be reached or answered
  with an error. Means "unknown", never "confirmed absent".
- TransportFailure: a Telegram Bot API call failed.
- InvalidInput: user input that cannot be acted on (reply, never mutate).
- StoreUnavailable: Redis failed underneath a repository call.
"""


class LookupUnavailable(Exception):
    pass


class TransportFailure(Exception):
    def __init__(self, method: str, reason: str, status_code: int = 0):
        super().__init__(f"{method} failed: {reason}")
        self.method = method
        self.reason = reason
        self.status_code = status_code


class InvalidInput(Exception):
    """Carries the corrective reply shown to the subscriber."""

    def __init__(self, reply: str):
        super().__init__(reply)
        self.reply = reply


class StoreUnavailable(Exception):
    pass
