from abc import ABC, abstractmethod


class NotificationPort(ABC):
    @abstractmethod
    def send_text(self, recipient_id: str, text: str) -> bool:
        """Send a text message. Returns True only if the channel accepted it."""
        raise NotImplementedError
