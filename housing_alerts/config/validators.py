"""Non-fatal configuration checks."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Inspect the raw configuration for settings that are legal but risky.

    Args:
        config_dict: Raw configuration dictionary from YAML

    Returns:
        List of warning messages
    """
    messages = []

    harvester = config_dict.get("harvester") or {}
    if isinstance(harvester, dict):
        for region in harvester.get("regions") or []:
            if isinstance(region, dict) and not region.get("enabled", True):
                name = region.get("name", region.get("code", "Unknown"))
                messages.append(f"Region '{name}' is disabled and will be skipped")

        delay = harvester.get("region_delay_seconds")
        if isinstance(delay, (int, float)) and delay == 0:
            messages.append("region_delay_seconds is 0; region fetches will not be rate limited")

        if harvester.get("persist") is False:
            messages.append("harvester.persist is false; harvested listings will never be matched")

    jobs = config_dict.get("jobs") or {}
    if isinstance(jobs, dict):
        interval = jobs.get("harvest_interval")
        if isinstance(interval, str):
            try:
                if parse_duration(interval) < 600:
                    messages.append(
                        f"Short harvest_interval ({interval}) may get the source to block requests"
                    )
            except DurationParseError:
                pass  # reported by model validation

        if jobs.get("enable_auto_cleanup") is False:
            messages.append("Automatic cleanup is disabled; tables will grow without bound")

    notifier = config_dict.get("notifier") or {}
    if isinstance(notifier, dict) and notifier.get("skip_delivery") is True:
        messages.append("notifier.skip_delivery is true; notifications are marked sent without email")

    return messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit each message through the warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
