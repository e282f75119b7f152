import pytest

from fake_providers import FakeResponse, FakeSession
from utils import (
    InvalidRequestError,
    MalformedResponseError,
    UpstreamError,
    build_story_prompt,
    convert_to_3wa,
    generate_story_segment,
    parse_story_request,
    split_three_word_address,
)


def test_split_three_word_address():
    address = split_three_word_address('filled.count.soap')
    assert address.words == ['filled', 'count', 'soap']
    assert address.full_words == 'filled.count.soap'


@pytest.mark.parametrize('full_words', ['a.b', 'a.b.c.d', 'a..c', '', None, 42])
def test_split_rejects_malformed_addresses(full_words):
    with pytest.raises(MalformedResponseError):
        split_three_word_address(full_words)


def test_parse_story_request_reads_camel_case_fields():
    story_request = parse_story_request({
        'latitude': '51.5',
        'longitude': -0.1,
        'previousWords': 'a.b.c',
        'storyContext': 'Earlier.',
        'getWordsOnly': True,
        'somethingElse': 'ignored',
    })
    assert story_request.latitude == 51.5
    assert story_request.previous_words == 'a.b.c'
    assert story_request.story_context == 'Earlier.'
    assert story_request.get_words_only is True


@pytest.mark.parametrize('body', [None, [], 'text', {'longitude': 1}, {'latitude': 'north', 'longitude': 1}])
def test_parse_story_request_rejects_bad_bodies(body):
    with pytest.raises(InvalidRequestError):
        parse_story_request(body)


def test_opening_prompt():
    prompt = build_story_prompt(['index', 'home', 'raft'])
    assert 'index, home, raft' in prompt
    assert 'beginning of a story' in prompt


@pytest.mark.parametrize('previous_words, story_context', [
    ('a.b.c', None),
    (None, 'Once.'),
    ('a.b.c', '   '),
    ('', 'Once.'),
])
def test_continuation_needs_both_previous_words_and_context(previous_words, story_context):
    prompt = build_story_prompt(['index', 'home', 'raft'], previous_words, story_context)
    assert 'beginning of a story' in prompt


def test_continuation_prompt():
    prompt = build_story_prompt(['index', 'home', 'raft'], 'a.b.c', 'The ship sank.')
    assert 'The ship sank.' in prompt
    assert 'a.b.c' in prompt
    assert 'index, home, raft' in prompt
    assert 'beginning of a story' not in prompt


def test_http_failure_without_error_payload():
    session = FakeSession(FakeResponse({}, status_code=503, reason='Service Unavailable'))

    with pytest.raises(UpstreamError) as excinfo:
        convert_to_3wa(1.0, 2.0, 'key', session=session)

    assert excinfo.value.provider == 'What3Words'
    assert str(excinfo.value) == 'What3Words API error: HTTP 503 Service Unavailable'


def test_non_json_provider_body():
    session = FakeSession(FakeResponse(ValueError('Expecting value'), status_code=502))

    with pytest.raises(MalformedResponseError):
        convert_to_3wa(1.0, 2.0, 'key', session=session)


def test_story_segment_uses_first_text_block():
    reply = {'content': [{'type': 'thinking', 'thinking': '...'}, {'type': 'text', 'text': 'First.'},
                         {'type': 'text', 'text': 'Second.'}]}
    session = FakeSession(None, reply)

    assert generate_story_segment('prompt', 'key', session=session) == 'First.'


def test_story_segment_without_text():
    session = FakeSession(None, {'content': []})

    with pytest.raises(MalformedResponseError):
        generate_story_segment('prompt', 'key', session=session)
