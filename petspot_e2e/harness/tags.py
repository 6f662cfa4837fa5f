"""Scenario settings derived from behave tags."""

import logging
import re
from collections.abc import Iterable

from petspot_e2e.constants import LocationMode, PlatformKind

logger = logging.getLogger(__name__)

TIMEOUT_TAG = re.compile(r"^timeout_(\d+)$")
MOBILE_TAGS = {"android", "ios", "mobile"}


def _normalize(tags: Iterable[str]) -> set[str]:
    return {tag.lstrip("@") for tag in tags}


def detect_platform(
    tags: Iterable[str], override: PlatformKind | None = None
) -> PlatformKind | None:
    """Pick the scenario's target platform.

    Parameters
    ----------
    tags : Iterable[str]
        Scenario tags, with or without a leading ``@``
    override : PlatformKind | None
        Explicitly configured platform, which always wins

    Returns
    -------
    PlatformKind | None
        Detected platform, or None for API-only and ambiguous scenarios
    """
    if override is not None:
        return override

    names = _normalize(tags)
    has_ios = "ios" in names
    has_android = "android" in names

    if has_ios and has_android:
        logger.warning("Scenario is tagged for both iOS and Android; set PLATFORM to choose")
        return None
    if has_ios:
        return PlatformKind.IOS
    if has_android:
        return PlatformKind.ANDROID
    if "mobile" in names:
        return PlatformKind.ANDROID
    if "web" in names:
        return PlatformKind.WEB
    return None


def detect_location_mode(tags: Iterable[str]) -> LocationMode:
    names = _normalize(tags)
    if "locationDialog" in names:
        return LocationMode.DIALOG
    if "location" in names:
        return LocationMode.GRANT
    return LocationMode.DEFAULT


def has_mobile_tags(tags: Iterable[str]) -> bool:
    return bool(_normalize(tags) & MOBILE_TAGS)


def has_tag(tags: Iterable[str], name: str) -> bool:
    return name.lstrip("@") in _normalize(tags)


def timeout_from_tags(tags: Iterable[str], default: float) -> float:
    """Return the budget from the first ``@timeout_<seconds>`` tag, else ``default``.

    Tags are read in the order given, so a scenario tag listed before an
    inherited feature tag takes precedence.

    Raises
    ------
    ValueError
        If the first timeout tag is not a positive number of seconds
    """
    for tag in tags:
        match = TIMEOUT_TAG.match(tag.lstrip("@"))
        if match:
            seconds = float(match.group(1))
            if seconds <= 0:
                raise ValueError(f"Timeout tag must be a positive number of seconds: {tag}")
            return seconds
    return default
