from typing import Dict, Any, List, Optional
from decimal import Decimal
import logging

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config import (
    WHAT3WORDS_SETTINGS,
    ANTHROPIC_SETTINGS,
    CORS_HEADERS,
    OPENING_PROMPT,
    CONTINUATION_PROMPT,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

WHAT3WORDS = 'What3Words'
ANTHROPIC = 'Anthropic'


class StoryError(Exception):
    """Base error for the story pipeline, carrying the HTTP status to answer with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(StoryError):
    """The request body is not JSON or does not match the request schema."""


class UpstreamError(StoryError):
    """A provider answered with a structured error payload."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider} API error: {message}")
        self.provider = provider


class TransportError(StoryError):
    """A provider could not be reached."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"Failed to reach {provider} API: {message}")
        self.provider = provider


class MalformedResponseError(StoryError):
    """A provider answered, but not in the shape we expect."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider} API returned a malformed response: {message}")
        self.provider = provider


class StoryRequest(BaseModel):
    """Inbound request body."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    latitude: float
    longitude: float
    previous_words: Optional[str] = Field(default=None, alias='previousWords')
    story_context: Optional[str] = Field(default=None, alias='storyContext')
    get_words_only: Optional[bool] = Field(default=None, alias='getWordsOnly')


class ThreeWordAddress(BaseModel):
    full_words: str
    words: List[str]


def get_cors_headers() -> Dict[str, str]:
    """Returns the headers sent with every response, preflight included."""
    return dict(CORS_HEADERS)


# Reuse requests session for connection pooling
_session = None
def _get_session():
    """Get or create requests session for connection reuse."""
    global _session
    if _session is None:
        _session = requests.Session()
    return _session


def parse_story_request(request_json: Any) -> StoryRequest:
    """
    Validates the JSON body of a story request.

    Args:
        request_json: The decoded JSON body, or None if it could not be decoded

    Returns:
        StoryRequest: The validated request

    Raises:
        InvalidRequestError: If the body is missing, not an object, or fails validation
    """
    if request_json is None:
        raise InvalidRequestError('Request body must be valid JSON')
    if not isinstance(request_json, dict):
        raise InvalidRequestError('Request body must be a JSON object')

    try:
        return StoryRequest.model_validate(request_json)
    except ValidationError as e:
        first = e.errors()[0]
        field = '.'.join(str(part) for part in first['loc']) or 'body'
        raise InvalidRequestError(f"Invalid field '{field}': {first['msg']}") from e


def _read_json(response, provider: str) -> Dict[str, Any]:
    """Decode a provider response, translating error payloads into UpstreamError."""
    try:
        data = response.json()
    except ValueError as e:
        raise MalformedResponseError(provider, f"body is not JSON (HTTP {response.status_code})") from e

    if not isinstance(data, dict):
        raise MalformedResponseError(provider, 'expected a JSON object')

    error = data.get('error')
    if error:
        message = error.get('message') if isinstance(error, dict) else str(error)
        raise UpstreamError(provider, message or 'unknown error')

    if not response.ok:
        raise UpstreamError(provider, f"HTTP {response.status_code} {response.reason}")

    return data


def split_three_word_address(full_words: Any) -> ThreeWordAddress:
    """
    Splits a dot-delimited what3words address into its three words.

    Raises:
        MalformedResponseError: Unless the address splits into exactly three non-empty words
    """
    if not isinstance(full_words, str):
        raise MalformedResponseError(WHAT3WORDS, "missing 'words' field")

    words = full_words.split('.')
    if len(words) != 3 or not all(words):
        raise MalformedResponseError(WHAT3WORDS, f"unexpected address '{full_words}'")

    return ThreeWordAddress(full_words=full_words, words=words)


def _format_degrees(value: float) -> str:
    """Plain decimal text, never exponent notation (5e-05 becomes 0.00005)."""
    return format(Decimal(str(value)), 'f')


def convert_to_3wa(latitude: float, longitude: float, api_key: str, session=None) -> ThreeWordAddress:
    """
    Resolves a coordinate to its what3words address.

    Args:
        latitude (float): Latitude in decimal degrees
        longitude (float): Longitude in decimal degrees
        api_key (str): What3Words API key
        session: Optional requests session, defaults to the shared one

    Returns:
        ThreeWordAddress: The full address and its three words
    """
    session = session or _get_session()
    params = {
        'coordinates': f"{_format_degrees(latitude)},{_format_degrees(longitude)}",
        'key': api_key,
    }

    logger.info(f"Calling What3Words API for lat={latitude}, lon={longitude}")
    try:
        response = session.get(
            WHAT3WORDS_SETTINGS['url'],
            params=params,
            timeout=WHAT3WORDS_SETTINGS['timeout_seconds']
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"What3Words API request error: {type(e).__name__}: {str(e)}")
        raise TransportError(WHAT3WORDS, str(e)) from e

    data = _read_json(response, WHAT3WORDS)
    address = split_three_word_address(data.get('words'))
    logger.info(f"Resolved three word address: {address.full_words}")
    return address


def build_story_prompt(words: List[str], previous_words: Optional[str] = None,
                       story_context: Optional[str] = None) -> str:
    """
    Builds the instruction sent to the language model.

    A continuation prompt is used only when both the previous words and the
    story so far are supplied; otherwise the model is asked to open a story.
    """
    joined = ', '.join(words)
    if previous_words and previous_words.strip() and story_context and story_context.strip():
        return CONTINUATION_PROMPT.format(
            previous_words=previous_words,
            words=joined,
            story_context=story_context
        )
    return OPENING_PROMPT.format(words=joined)


def _extract_text(data: Dict[str, Any]) -> str:
    content = data.get('content')
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and isinstance(block.get('text'), str):
                return block['text']
    raise MalformedResponseError(ANTHROPIC, 'no text content block')


def generate_story_segment(prompt: str, api_key: str, session=None) -> str:
    """
    Asks the Anthropic Messages API for a short story segment.

    Args:
        prompt (str): The single user message to send
        api_key (str): Anthropic API key
        session: Optional requests session, defaults to the shared one

    Returns:
        str: The text of the first content block
    """
    session = session or _get_session()
    headers = {
        'Content-Type': 'application/json',
        'x-api-key': api_key,
        'anthropic-version': ANTHROPIC_SETTINGS['version'],
    }
    payload = {
        'model': ANTHROPIC_SETTINGS['model'],
        'max_tokens': ANTHROPIC_SETTINGS['max_tokens'],
        'messages': [{
            'role': 'user',
            'content': prompt
        }]
    }

    logger.info(f"Calling Anthropic API with model {ANTHROPIC_SETTINGS['model']}")
    try:
        response = session.post(
            ANTHROPIC_SETTINGS['url'],
            headers=headers,
            json=payload,
            timeout=ANTHROPIC_SETTINGS['timeout_seconds']
        )
    except requests.exceptions.RequestException as e:
        logger.error(f"Anthropic API request error: {type(e).__name__}: {str(e)}")
        raise TransportError(ANTHROPIC, str(e)) from e

    return _extract_text(_read_json(response, ANTHROPIC))


def build_story_segment(story_request: StoryRequest, settings, session=None) -> Dict[str, Any]:
    """
    Runs the story pipeline for one request.

    Resolves the coordinate, then, unless only the words were asked for,
    generates the next story segment from them.

    Returns:
        dict: words and fullWords, plus storySegment when one was generated
    """
    address = convert_to_3wa(
        story_request.latitude,
        story_request.longitude,
        settings.what3words_api_key,
        session=session
    )

    if story_request.get_words_only:
        logger.info("Words only requested, skipping story generation")
        return {
            'words': address.words,
            'fullWords': address.full_words
        }

    prompt = build_story_prompt(
        address.words,
        previous_words=story_request.previous_words,
        story_context=story_request.story_context
    )
    story_segment = generate_story_segment(prompt, settings.anthropic_api_key, session=session)

    return {
        'words': address.words,
        'storySegment': story_segment,
        'fullWords': address.full_words
    }
