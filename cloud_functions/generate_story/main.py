import functions_framework
from flask import jsonify
import logging
from config import get_settings
from utils import (
    InvalidRequestError,
    StoryError,
    build_story_segment,
    get_cors_headers,
    parse_story_request,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Read once per cold start
settings = get_settings()


def handle_story_request(request, settings, session=None):
    """
    Handles a single story request.

    Args:
        request (flask.Request): The request object
        settings: Provider API keys
        session: Optional requests session used for both provider calls

    Returns:
        tuple: (body, status code, headers)
    """
    headers = get_cors_headers()

    # Handle CORS preflight request
    if request.method == 'OPTIONS':
        return ('', 200, headers)

    if request.method != 'POST':
        logger.warning(f"Rejected {request.method} request")
        return jsonify({'error': 'Method not allowed'}), 405, headers

    try:
        request_json = request.get_json(force=True, silent=True)
        story_request = parse_story_request(request_json)
        logger.info(
            f"Story request for lat={story_request.latitude}, lon={story_request.longitude}, "
            f"words_only={bool(story_request.get_words_only)}"
        )

        result = build_story_segment(story_request, settings, session=session)
        return jsonify(result), 200, headers

    except InvalidRequestError as e:
        logger.warning(f"Invalid request: {e.message}")
        return jsonify({'error': e.message}), e.status_code, headers
    except StoryError as e:
        logger.error(f"{type(e).__name__}: {e.message}")
        return jsonify({'error': e.message}), e.status_code, headers
    except Exception as e:
        logger.error(f"Unexpected error generating story: {str(e)}", exc_info=True)
        return jsonify({'error': str(e) or type(e).__name__}), 500, headers


@functions_framework.http
def generate_story(request):
    """
    HTTP Cloud Function that turns a coordinate into a what3words address
    and, unless getWordsOnly is set, the next segment of a story built from it.

    Args:
        request (flask.Request): The request object
    Returns:
        flask.Response: JSON response with words, fullWords and storySegment
    """
    return handle_story_request(request, settings)
