"""Getting an exported save file onto the user's device."""

from .capabilities import HostCapabilities, HostFamily, classify_user_agent, is_ios, is_mobile, is_safari
from .chain import DeliveryResult, FileDeliveryChain, Strategy, plan_strategies, select_strategy
from .host import DeliveryHost, DirectoryHost
from .instructions import save_instructions

__all__ = [
    "HostCapabilities",
    "HostFamily",
    "classify_user_agent",
    "is_ios",
    "is_mobile",
    "is_safari",
    "DeliveryResult",
    "FileDeliveryChain",
    "Strategy",
    "plan_strategies",
    "select_strategy",
    "DeliveryHost",
    "DirectoryHost",
    "save_instructions",
]
