"""Test doubles for the What3Words and Anthropic HTTP calls."""


class FakeResponse:
    def __init__(self, payload, status_code=200, reason='OK'):
        self.payload = payload
        self.status_code = status_code
        self.reason = reason

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Records every call; answers GET with the What3Words reply and POST with the Anthropic reply."""

    def __init__(self, w3w_reply, anthropic_reply=None):
        self.w3w_reply = w3w_reply
        self.anthropic_reply = anthropic_reply
        self.get_calls = []
        self.post_calls = []

    def _answer(self, reply):
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, FakeResponse):
            return reply
        return FakeResponse(reply)

    def get(self, url, **kwargs):
        self.get_calls.append((url, kwargs))
        return self._answer(self.w3w_reply)

    def post(self, url, **kwargs):
        self.post_calls.append((url, kwargs))
        return self._answer(self.anthropic_reply)

    @property
    def prompts(self):
        return [kwargs['json']['messages'][0]['content'] for _, kwargs in self.post_calls]


def anthropic_reply(text):
    return {
        'id': 'msg_test',
        'type': 'message',
        'role': 'assistant',
        'content': [{'type': 'text', 'text': text}],
    }
