"""
Voice Package

Chat commands and voice events for private voice channels, delegating to
the services in ``services``.
"""

from .commands import VoiceCommands, parse_command
from .events import VoiceEvents

__all__ = ["VoiceCommands", "VoiceEvents", "parse_command"]
