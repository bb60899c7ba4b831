import re
from typing import NamedTuple

_BOT = re.compile(r"bot|crawler|spider|headless", re.I)
_TABLET = re.compile(r"tablet|ipad", re.I)
_MOBILE = re.compile(r"mobi|android|iphone", re.I)

# First match wins; Edge and Opera UAs also carry "Chrome", Chrome carries "Safari".
_BROWSERS = (
    ("Edg", "Edge"),
    ("OPR", "Opera"),
    ("Firefox", "Firefox"),
    ("Chrome", "Chrome"),
    ("Safari", "Safari"),
)

# Android UAs mention Linux and iOS UAs mention Mac OS X.
_SYSTEMS = (
    ("Windows", "Windows"),
    ("Android", "Android"),
    ("iPhone", "iOS"),
    ("iPad", "iOS"),
    ("Mac", "macOS"),
    ("Linux", "Linux"),
)


class DeviceInfo(NamedTuple):
    device_type: str
    browser: str
    os: str


def _first(user_agent: str, table) -> str:
    for needle, name in table:
        if needle in user_agent:
            return name
    return "Unknown"


def parse_user_agent(user_agent: str | None) -> DeviceInfo:
    ua = user_agent or ""
    if _BOT.search(ua):
        device = "bot"
    elif _TABLET.search(ua):
        device = "tablet"
    elif _MOBILE.search(ua):
        device = "mobile"
    else:
        device = "desktop"
    return DeviceInfo(device, _first(ua, _BROWSERS), _first(ua, _SYSTEMS))
