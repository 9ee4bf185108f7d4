# Control API client
from peerchat.client.client import ControlClient as ControlClient
from peerchat.client.client import ControlError as ControlError

__all__ = ["ControlClient", "ControlError"]
