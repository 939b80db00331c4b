"""Channel port — abstract interface for notification dispatch."""

from abc import ABC, abstractmethod


class ChannelPort(ABC):
    """Abstract interface for notification channel adapters."""

    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> dict:
        """Deliver one message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
