# Common utilities
from peerchat.common.crypto import CryptoUtils as CryptoUtils
from peerchat.common.logging_utils import setup_logger as setup_logger

__all__ = ["CryptoUtils", "setup_logger"]
