"""Configuration settings for the What3Words story segment API."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

WHAT3WORDS_SETTINGS = {
    'url': 'https://api.what3words.com/v3/convert-to-3wa',
    'timeout_seconds': 10,
}

ANTHROPIC_SETTINGS = {
    'url': 'https://api.anthropic.com/v1/messages',
    'model': 'claude-sonnet-4-20250514',
    'version': '2023-06-01',
    'max_tokens': 100,
    'timeout_seconds': 30,
}

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
    'Content-Type': 'application/json',
}

# Prompt wording is tunable; both variants must ask for all three words.
OPENING_PROMPT = """Write the beginning of a story in 1-2 sentences that naturally incorporates these three words: {words}.
Use all three words. Respond with the story text only."""

CONTINUATION_PROMPT = """Continue this story. The previous location words were: {previous_words}. The new location words are: {words}.

Story so far:
{story_context}

Write 1-2 sentences continuing the story, naturally incorporating all of the new words: {words}. Respond with the story text only."""


class Settings(BaseSettings):
    """Provider API keys, read from the environment once per cold start."""

    model_config = SettingsConfigDict(extra="ignore")

    what3words_api_key: str = ""
    anthropic_api_key: str = ""


@lru_cache
def get_settings() -> Settings:
    return Settings()
