"""
Profile loader for PalmGestureSelector.

Loads and validates JSON tuning profiles. Profile properties use
camelCase, e.g.:

    {
        "id": "default",
        "name": "Default",
        "hands": ["right"],
        "selection": {"windowSize": 20, "dropWindowSize": 5, "graspThreshold": 0.3},
        "directionBlend": {"handWeight": 0.4, "palmWeight": 0.4, "deviceWeight": 0.2},
        "palmVisibility": {"lower": 0.2, "upper": 0.8}
    }
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from .config import DirectionBlendConfig, SelectionThresholds, VisibilityRange
from .hand_skeleton import Chirality
from .logger import get_logger

logger = get_logger("ProfileLoader")

# camelCase profile key -> dataclass field, per section
SELECTION_KEYS: dict[str, str] = {
    "windowSize": "window_size",
    "dropWindowSize": "drop_window_size",
    "graspThreshold": "grasp_threshold",
    "ungraspThreshold": "ungrasp_threshold",
    "selectingThreshold": "selecting_threshold",
    "captureOffset": "capture_offset",
}
BLEND_KEYS: dict[str, str] = {
    "handWeight": "hand_weight",
    "palmWeight": "palm_weight",
    "deviceWeight": "device_weight",
    "deviceAxis": "device_axis",
}
VISIBILITY_KEYS: dict[str, str] = {
    "lower": "lower",
    "upper": "upper",
}
INTEGER_FIELDS = {"window_size", "drop_window_size", "capture_offset"}


class ProfileLoadError(Exception):
    """Raised when profile loading or validation fails."""
    pass


@dataclass
class SelectorProfile:
    """Tuning profile for the selection pipeline."""

    id: str
    name: str
    hands: tuple[Chirality, ...] = (Chirality.LEFT, Chirality.RIGHT)
    selection: SelectionThresholds = field(default_factory=SelectionThresholds)
    direction_blend: DirectionBlendConfig = field(default_factory=DirectionBlendConfig)
    palm_visibility: VisibilityRange = field(default_factory=VisibilityRange)


def load_profile(profile_path: Union[str, Path]) -> SelectorProfile:
    """
    Load and validate a profile from a JSON file.

    Args:
        profile_path: Path to the JSON profile file.

    Returns:
        Validated SelectorProfile instance.

    Raises:
        ProfileLoadError: If file cannot be read or validation fails.
    """
    path = Path(profile_path)
    logger.info(f"Loading profile from: {path}")

    if not path.exists():
        raise ProfileLoadError(f"Profile file not found: {path}")

    if not path.is_file():
        raise ProfileLoadError(f"Profile path is not a file: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ProfileLoadError(f"Invalid JSON in profile: {e}")
    except UnicodeDecodeError as e:
        raise ProfileLoadError(f"Profile is not valid UTF-8: {e}")
    except IOError as e:
        raise ProfileLoadError(f"Cannot read profile file: {e}")

    if not isinstance(data, dict):
        raise ProfileLoadError("Profile root must be a JSON object")

    return parse_profile(data)


def _section_kwargs(
    data: dict[str, Any],
    section: str,
    keys: dict[str, str]
) -> dict[str, Any]:
    """
    Collect valid dataclass kwargs from one profile section.

    Ill-typed or unknown values are skipped with a warning so the
    dataclass default applies.
    """
    section_data = data.get(section)
    if section_data is None:
        return {}
    if not isinstance(section_data, dict):
        logger.warning(f"Invalid '{section}' section, using defaults")
        return {}

    kwargs: dict[str, Any] = {}
    for key, value in section_data.items():
        field_name = keys.get(key)
        if field_name is None:
            logger.warning(f"Unknown key '{section}.{key}', ignoring")
            continue

        if field_name == "device_axis":
            if (isinstance(value, list) and len(value) == 3
                    and all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in value)):
                kwargs[field_name] = tuple(float(c) for c in value)
            else:
                logger.warning(f"Invalid '{section}.{key}' ({value!r}), using default")
            continue

        if field_name in INTEGER_FIELDS:
            valid = isinstance(value, int) and not isinstance(value, bool)
        else:
            valid = isinstance(value, (int, float)) and not isinstance(value, bool)
        if not valid:
            logger.warning(f"Invalid '{section}.{key}' ({value!r}), using default")
            continue

        kwargs[field_name] = value if field_name in INTEGER_FIELDS else float(value)

    return kwargs


def _parse_hands(data: dict[str, Any]) -> tuple[Chirality, ...]:
    """Parse the hands list, defaulting to both hands."""
    hands_data = data.get("hands")
    if hands_data is None:
        return (Chirality.LEFT, Chirality.RIGHT)
    if not isinstance(hands_data, list):
        logger.warning("Invalid 'hands' value, tracking both hands")
        return (Chirality.LEFT, Chirality.RIGHT)

    hands = []
    for value in hands_data:
        try:
            hand = Chirality(str(value).lower())
        except ValueError:
            logger.warning(f"Skipping unknown hand: {value!r}")
            continue
        if hand not in hands:
            hands.append(hand)

    if not hands:
        raise ProfileLoadError("Profile 'hands' lists no valid hand")
    return tuple(hands)


def parse_profile(data: dict[str, Any]) -> SelectorProfile:
    """
    Parse and validate profile data from dictionary.

    Args:
        data: Dictionary with camelCase profile properties.

    Returns:
        Validated SelectorProfile instance.

    Raises:
        ProfileLoadError: If required fields are missing or values are inconsistent.
    """
    if "id" not in data:
        raise ProfileLoadError("Profile missing required field: id")

    if "name" not in data:
        raise ProfileLoadError("Profile missing required field: name")

    try:
        selection = SelectionThresholds(**_section_kwargs(data, "selection", SELECTION_KEYS))
        direction_blend = DirectionBlendConfig(**_section_kwargs(data, "directionBlend", BLEND_KEYS))
        palm_visibility = VisibilityRange(**_section_kwargs(data, "palmVisibility", VISIBILITY_KEYS))
    except ValueError as e:
        raise ProfileLoadError(f"Invalid profile values: {e}")

    profile = SelectorProfile(
        id=str(data["id"]),
        name=str(data["name"]),
        hands=_parse_hands(data),
        selection=selection,
        direction_blend=direction_blend,
        palm_visibility=palm_visibility
    )

    logger.info(f"Loaded profile: {profile.name} (id={profile.id})")
    logger.debug(f"  Hands: {', '.join(h.value for h in profile.hands)}")
    logger.debug(f"  Selection: {profile.selection}")
    logger.debug(f"  Direction blend: {profile.direction_blend}")
    logger.debug(f"  Palm visibility: {profile.palm_visibility}")

    return profile


def create_default_profile() -> SelectorProfile:
    """
    Create a default profile with standard settings.

    Returns:
        SelectorProfile with default values.
    """
    return SelectorProfile(id="default", name="Default")
