"""Abstract notification sink interface."""

from abc import ABC, abstractmethod


class NotificationSink(ABC):
    """Abstract base class for message delivery channels.

    ``default_chat_id`` is the single process-wide recipient used for
    scheduled and batch reports.
    """

    default_chat_id: str

    @abstractmethod
    async def send(self, chat_id: str, text: str) -> None:
        """Deliver ``text`` to ``chat_id``.

        Raises:
            DeliveryError: the channel rejected or could not be reached.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release HTTP resources."""
        ...
