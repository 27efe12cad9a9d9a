"""Chat domain exports."""

from .longpoll import LongPollResult, wait_for_messages
from .service import ChatService

__all__ = [
	"ChatService",
	"LongPollResult",
	"wait_for_messages",
]
