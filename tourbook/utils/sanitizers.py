import html
import bleach
from tourbook.utils.validators import MAX_NOTE_LENGTH


def sanitize_string(text):
    """Sanitize a string by removing HTML tags and stripping whitespace.

    bleach escapes the text it keeps, so entities are decoded again and the
    result is plain text, not markup.
    """
    if text is None:
        return ''

    # Remove all HTML tags
    text = bleach.clean(text, tags=[], strip=True)

    return html.unescape(text).strip()


def sanitize_note(text, max_length=MAX_NOTE_LENGTH):
    """Clean a free-text tour note; empty notes become None"""
    if text is None:
        return None

    cleaned = sanitize_string(str(text))[:max_length].strip()
    return cleaned or None
