"""User-facing wording for every delivery path. Each message names the file to save."""
from __future__ import annotations

from .capabilities import HostCapabilities

SHARE_TITLE = "FIQuest Save File"
SHARE_TEXT = "Your FIQuest game data"


def save_instructions(filename: str, capabilities: HostCapabilities) -> str:
    """Platform-specific steps for finding the prepared save file."""
    text = "Your FIQuest save file has been prepared.\n\n"
    if capabilities.is_touch_host:
        if capabilities.is_ios:
            text += "iOS Instructions:\n"
            text += '1. Tap "Share" → "Save to Files"\n'
            text += "2. Choose location (iCloud Drive recommended)\n"
        else:
            text += "Android Instructions:\n"
            text += "1. File should download automatically\n"
            text += "2. Check Downloads folder\n"
    elif capabilities.is_safari:
        text += "Safari Instructions:\n"
        text += "1. Press Cmd+S to save\n"
        text += "2. Choose location\n"
    else:
        text += "Desktop Instructions:\n"
        text += "1. File should download automatically\n"
        text += "2. Check Downloads folder\n"
    return text + f"3. Filename: {filename}"


def popup_instructions(filename: str, touch: bool, safari: bool = True) -> str:
    if touch:
        return (
            "To save your FIQuest data:\n"
            "1. Tap and hold the content\n"
            '2. Select "Copy"\n'
            "3. Paste into a text file\n"
            f"4. Save with filename: {filename}"
        )
    if safari:
        return f"To save your FIQuest data:\n1. Press Cmd+S (Mac) or Ctrl+S (PC)\n2. Save as filename: {filename}"
    return f"To save your FIQuest data:\n1. Press Ctrl+S (or Cmd+S on Mac)\n2. Save as filename: {filename}"


def popup_blocked(filename: str, safari: bool = True) -> str:
    if safari:
        return (
            "Popup blocked. Your FIQuest data has been copied to clipboard.\n"
            f"Please paste into a text file and save as: {filename}"
        )
    return f"Popup blocked. Data copied to clipboard.\nPlease paste into a text file and save as: {filename}"


def share_failed(filename: str) -> str:
    return f"Unable to share file. Data copied to clipboard.\nPlease paste into a text file and save as: {filename}"


def clipboard_only(filename: str, touch: bool) -> str:
    if touch:
        return (
            "To save your FIQuest data:\n"
            "1. Data has been copied to clipboard\n"
            "2. Open Notes or Files app\n"
            "3. Create new text file\n"
            f"4. Paste and save as: {filename}"
        )
    return (
        "Unable to download file. Data has been copied to clipboard.\n"
        f"Please paste into a text file and save as: {filename}"
    )


def clipboard_failed(filename: str) -> str:
    return (
        "Unable to download or copy your FIQuest data automatically.\n"
        f"Please export again from another browser or device and save it as: {filename}"
    )
