"""Channel adapter registry — pluggable notification dispatch channels.

Provides singleton access to channel adapters. Uses fake adapters by
default; real SMS or push providers plug in through ``set_channel``.
"""

from medflow.notifications.channel.fake_adapters import FakeInAppAdapter, FakeSMSAdapter
from medflow.notifications.notification import NotificationChannel

_channel_instances: dict[str, object] = {}


def get_channel(channel_type: str):
    """Return the configured channel adapter (singleton per channel type)."""
    if channel_type not in _channel_instances:
        if channel_type == NotificationChannel.IN_APP.value:
            _channel_instances[channel_type] = FakeInAppAdapter()
        elif channel_type == NotificationChannel.SMS.value:
            _channel_instances[channel_type] = FakeSMSAdapter()
        else:
            raise ValueError(f"Unknown channel type: {channel_type}")

    return _channel_instances[channel_type]


def set_channel(channel_type: str, adapter) -> None:
    _channel_instances[channel_type] = adapter


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()
