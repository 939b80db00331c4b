"""Fake channel adapters — record sent messages for testing."""

from uuid import uuid4

from medflow.notifications.channel.port import ChannelPort


class _RecordingAdapter(ChannelPort):
    prefix = "msg"

    def __init__(self):
        self.sent_messages: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Delivery failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send(self, to: str, subject: str, body: str) -> dict:
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"{self.prefix}-{uuid4().hex[:12]}"
        self.sent_messages.append({"message_id": message_id, "to": to, "subject": subject, "body": body})
        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        """Clear sent messages (useful between tests)."""
        self.sent_messages.clear()
        self.should_succeed = True
        self.failure_reason = "Delivery failed"


class FakeInAppAdapter(_RecordingAdapter):
    """In-app inbox adapter that keeps messages in memory."""

    prefix = "inapp"


class FakeSMSAdapter(_RecordingAdapter):
    """SMS adapter that records messages in memory for test assertions."""

    prefix = "sms"

    def send(self, to: str, subject: str, body: str) -> dict:
        # SMS has no subject line
        return super().send(to, "", body)
