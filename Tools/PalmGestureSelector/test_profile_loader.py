import json

import pytest

from PalmGestureSelector.config import (
    DIRECTION_DEVICE_WEIGHT,
    SELECTION_WINDOW_SIZE,
)
from PalmGestureSelector.hand_skeleton import Chirality
from PalmGestureSelector.profile_loader import (
    ProfileLoadError,
    create_default_profile,
    load_profile,
    parse_profile,
)


def write_profile(tmp_path, data):
    path = tmp_path / "profile.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_full_profile(tmp_path):
    path = write_profile(tmp_path, {
        "id": "tight",
        "name": "Tight grasp",
        "hands": ["Right"],
        "selection": {"windowSize": 12, "dropWindowSize": 3, "graspThreshold": 0.25, "captureOffset": 2},
        "directionBlend": {"handWeight": 0.5, "palmWeight": 0.5, "deviceWeight": 0, "deviceAxis": [0, 0, -1]},
        "palmVisibility": {"lower": 0.1, "upper": 0.9},
    })

    profile = load_profile(path)

    assert profile.id == "tight"
    assert profile.hands == (Chirality.RIGHT,)
    assert profile.selection.window_size == 12
    assert profile.selection.drop_window_size == 3
    assert profile.selection.grasp_threshold == pytest.approx(0.25)
    assert profile.selection.capture_offset == 2
    assert profile.direction_blend.device_weight == 0.0
    assert profile.direction_blend.device_axis == (0.0, 0.0, -1.0)
    assert profile.palm_visibility.upper == pytest.approx(0.9)


def test_minimal_profile_uses_defaults():
    profile = parse_profile({"id": "min", "name": "Minimal"})
    default = create_default_profile()

    assert profile.hands == (Chirality.LEFT, Chirality.RIGHT)
    assert profile.selection == default.selection
    assert profile.direction_blend == default.direction_blend
    assert profile.palm_visibility == default.palm_visibility


@pytest.mark.parametrize("data", [
    {"name": "No id"},
    {"id": "no-name"},
])
def test_missing_required_field(data):
    with pytest.raises(ProfileLoadError):
        parse_profile(data)


def test_file_not_found(tmp_path):
    with pytest.raises(ProfileLoadError, match="not found"):
        load_profile(tmp_path / "missing.json")


def test_path_is_directory(tmp_path):
    with pytest.raises(ProfileLoadError, match="not a file"):
        load_profile(tmp_path)


def test_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{\"id\": ", encoding="utf-8")
    with pytest.raises(ProfileLoadError, match="Invalid JSON"):
        load_profile(path)


def test_invalid_utf8(tmp_path):
    path = tmp_path / "latin1.json"
    path.write_bytes(b'{"id": "x", "name": "Caf\xe9"}')
    with pytest.raises(ProfileLoadError, match="UTF-8"):
        load_profile(path)


def test_root_must_be_object(tmp_path):
    with pytest.raises(ProfileLoadError):
        load_profile(write_profile(tmp_path, ["id", "name"]))


@pytest.mark.parametrize("section, values", [
    ("selection", {"windowSize": 5, "dropWindowSize": 5}),
    ("selection", {"captureOffset": 9}),
    ("directionBlend", {"handWeight": 0, "palmWeight": 0, "deviceWeight": 0}),
    ("palmVisibility", {"lower": 0.8, "upper": 0.2}),
])
def test_inconsistent_values_are_rejected(section, values):
    with pytest.raises(ProfileLoadError, match="Invalid profile values"):
        parse_profile({"id": "bad", "name": "Bad", section: values})


def test_ill_typed_values_fall_back_to_defaults(caplog):
    profile = parse_profile({
        "id": "typos",
        "name": "Typos",
        "selection": {"windowSize": "twenty", "dropWindowSize": 4.5, "graspThreshold": True, "bogus": 1},
        "directionBlend": {"deviceAxis": [0, 1], "deviceWeight": None},
        "palmVisibility": "wide",
    })

    assert profile.selection.window_size == SELECTION_WINDOW_SIZE
    assert profile.selection.drop_window_size == 5
    assert profile.selection.grasp_threshold == pytest.approx(0.3)
    assert profile.direction_blend.device_axis == (0.0, 1.0, 0.0)
    assert profile.direction_blend.device_weight == pytest.approx(DIRECTION_DEVICE_WEIGHT)
    assert "selection.bogus" in caplog.text


def test_unknown_hands_are_skipped():
    profile = parse_profile({"id": "h", "name": "Hands", "hands": ["left", "tentacle", "LEFT"]})
    assert profile.hands == (Chirality.LEFT,)


def test_no_valid_hand_is_an_error():
    with pytest.raises(ProfileLoadError):
        parse_profile({"id": "h", "name": "Hands", "hands": ["tentacle"]})


def test_default_profile():
    profile = create_default_profile()

    assert profile.id == "default"
    assert profile.selection.window_size == 20
    assert profile.selection.capture_offset == 5
