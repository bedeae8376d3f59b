"""Errors raised at the API boundary"""


class ValidationError(ValueError):
    """An expense payload is missing a required field or carries a malformed one."""

    def __init__(self, messages):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))
