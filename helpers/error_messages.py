"""
Centralized formatting for the chat replies the voice commands send.

Only two failures are ever reported to users (ineligible ``new`` and names
that do not fit); every other failure stays silent and is logged instead.
"""

from utils.logging import get_logger

logger = get_logger(__name__)

_ERROR_MESSAGES = {
    "NOT_ELIGIBLE": "<@{user_id}>, you either already own a channel or are in a private voice channel!",
    "NAME_TOO_LONG": "<@{user_id}>, that does not fit! Channel names are limited to {limit} characters.",
}

_SUCCESS_MESSAGES = {
    "CREATED": "Created a new voice channel! Name: `{name}`",
    "INVITED": "They can now join your channel, `{name}`",
    "OPPED": "They are now OP'd in your channel, `{name}`",
    "DEOPPED": "They are now De-OP'd in your channel, `{name}`",
    "KICKED": "They can no longer join/speak in your channel, `{name}`",
    "DELETED": "Deleted channel: `{name}`",
}


class _Placeholders(dict):
    """Format values; keys the caller did not pass render as ``???``."""

    def __init__(self, code: str, values: dict) -> None:
        super().__init__(values)
        self.code = code

    def __missing__(self, key: str) -> str:
        logger.warning("Missing value %s for message %s", key, self.code)
        return "???"


def format_user_error(code: str, **kwargs) -> str:
    """
    Format a user-facing failure reply.

    Args:
        code: Error code identifying the type of error
        **kwargs: Values inserted into the message
            - user_id: Id of the author, mentioned in the reply
            - limit: Channel name length limit (for NAME_TOO_LONG)

    Examples:
        >>> format_user_error("NOT_ELIGIBLE", user_id=42)
        '<@42>, you either already own a channel or are in a private voice channel!'
    """
    if code not in _ERROR_MESSAGES:
        logger.warning(f"Unknown error code used in format_user_error: {code}")
        return "Something went wrong."

    return _ERROR_MESSAGES[code].format_map(_Placeholders(code, kwargs))


def format_user_success(code: str, **kwargs) -> str:
    """
    Format a confirmation reply.

    Args:
        code: Success code identifying the action
        **kwargs: Values inserted into the message
            - name: Display name of the affected channel

    Examples:
        >>> format_user_success("DELETED", name="PV: Game Night")
        'Deleted channel: `PV: Game Night`'
    """
    message = _SUCCESS_MESSAGES.get(code)
    if message is None:
        logger.warning(f"Unknown success code used in format_user_success: {code}")
        return "Done."

    try:
        return message.format(**kwargs)
    except KeyError:
        return "Done."
