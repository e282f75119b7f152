"""Shared fixtures: a fake requests session standing in for both providers."""

import flask
import pytest

from config import Settings
from fake_providers import FakeSession, anthropic_reply


@pytest.fixture
def settings():
    return Settings(what3words_api_key='w3w-test-key', anthropic_api_key='anthropic-test-key')


@pytest.fixture
def app():
    return flask.Flask(__name__)


@pytest.fixture
def make_session():
    def _make(words='filled.count.soap', segment='The filled jar sat by the count of soap.'):
        w3w = {'words': words} if isinstance(words, str) else words
        llm = anthropic_reply(segment) if isinstance(segment, str) else segment
        return FakeSession(w3w, llm)
    return _make
