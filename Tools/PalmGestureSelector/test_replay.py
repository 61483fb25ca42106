import json
import logging
import math

import numpy as np
import pytest

from PalmGestureSelector.hand_skeleton import Chirality, JointName
from PalmGestureSelector.logger import ROOT_LOGGER_NAME
from PalmGestureSelector.replay import FrameFormatError, main, parse_frame, read_frames

DEVICE = {"position": [0.0, 0.08, 0.5], "quaternion": [1.0, 0.0, 0.0, 0.0]}


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.getLogger(ROOT_LOGGER_NAME).handlers.clear()


@pytest.fixture
def frame_record(make_hand):
    """Factory for one recorded frame of a synthetic hand."""
    def build(timestamp, curl=0.0, chirality=Chirality.RIGHT):
        hand = make_hand(curl=curl, chirality=chirality)
        return {
            "timestamp": timestamp,
            "chirality": chirality.value,
            "joints": {joint.value: hand.position(joint).tolist() for joint in hand.positions},
            "device": DEVICE,
        }
    return build


@pytest.fixture
def grasp_session(frame_record):
    curls = [0.0] * 10 + [float(c) for c in np.linspace(0.0, math.radians(100), 6)[1:]]
    return [frame_record(i / 90.0, curl) for i, curl in enumerate(curls)]


def write_frames(path, records):
    lines = [json.dumps(r) if isinstance(r, dict) else r for r in records]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def state_lines(output):
    return [line for line in output.splitlines() if line.startswith("t=")]


def test_replay_reports_aim_then_confirm(tmp_path, capsys, grasp_session):
    path = write_frames(tmp_path / "session.jsonl", grasp_session)

    assert main(["--frames", str(path), "--no-log-file"]) == 0

    lines = state_lines(capsys.readouterr().out)
    assert len(lines) == 2
    assert lines[0] == "t=0.000 right Aiming"
    assert lines[1].endswith("right Confirmed")


def test_replay_skips_blank_lines_and_ignored_hands(tmp_path, capsys, frame_record):
    profile = tmp_path / "profile.json"
    profile.write_text(json.dumps({"id": "left", "name": "Left only", "hands": ["left"]}), encoding="utf-8")
    path = write_frames(tmp_path / "session.jsonl", ["", frame_record(0.0), "   "])

    assert main(["--frames", str(path), "--profile", str(profile), "--no-log-file"]) == 0
    assert state_lines(capsys.readouterr().out) == []


def test_missing_profile_is_a_profile_error(tmp_path, grasp_session):
    path = write_frames(tmp_path / "session.jsonl", grasp_session)
    assert main(["--frames", str(path), "--profile", str(tmp_path / "nope.json"), "--no-log-file"]) == 1


def test_malformed_line_is_an_input_error(tmp_path, frame_record):
    path = write_frames(tmp_path / "session.jsonl", [frame_record(0.0), "{not json"])
    assert main(["--frames", str(path), "--no-log-file"]) == 2


def test_missing_joint_is_an_input_error(tmp_path, frame_record):
    record = frame_record(0.0)
    del record["joints"][JointName.MIDDLE_TIP.value]
    path = write_frames(tmp_path / "session.jsonl", [record])

    assert main(["--frames", str(path), "--no-log-file"]) == 2


def test_missing_frames_file_is_an_input_error(tmp_path):
    assert main(["--frames", str(tmp_path / "absent.jsonl"), "--no-log-file"]) == 2


def test_invalid_utf8_is_an_input_error(tmp_path):
    path = tmp_path / "session.jsonl"
    path.write_bytes(b'{"timestamp": 0.0}\xff\xfe\n')

    assert main(["--frames", str(path), "--no-log-file"]) == 2
    with pytest.raises(FrameFormatError, match="UTF-8"):
        list(read_frames(path))


def test_zero_device_quaternion_is_an_input_error(tmp_path, frame_record):
    record = frame_record(0.0)
    record["device"] = {"position": [0.0, 0.08, 0.5], "quaternion": [0.0, 0.0, 0.0, 0.0]}
    path = write_frames(tmp_path / "session.jsonl", [record])

    assert main(["--frames", str(path), "--no-log-file"]) == 2
    with pytest.raises(FrameFormatError):
        parse_frame(record)


def test_read_frames_reports_line_number(tmp_path, frame_record):
    path = write_frames(tmp_path / "session.jsonl", [frame_record(0.0), {"timestamp": 1.0}])

    frames = read_frames(path)
    next(frames)
    with pytest.raises(FrameFormatError, match="Line 2"):
        next(frames)


def test_parse_frame_with_quaternion(frame_record):
    half = math.pi / 4
    record = frame_record(0.5, chirality=Chirality.LEFT)
    record["tracked"] = {"thumbTip": False}
    record["device"] = {"position": [0, 0, 0], "quaternion": [math.cos(half), math.sin(half), 0.0, 0.0]}

    timestamp, joints, device = parse_frame(record)

    assert timestamp == 0.5
    assert joints.chirality == Chirality.LEFT
    assert not joints.is_tracked(JointName.THUMB_TIP)
    assert np.allclose(device.axis((0, 1, 0)), [0.0, 0.0, 1.0])


def test_parse_frame_with_rotation_rows(frame_record):
    record = frame_record(0.0)
    record["device"] = {"position": [1, 2, 3], "rotation": [[0, -1, 0], [1, 0, 0], [0, 0, 1]]}

    _, _, device = parse_frame(record)

    assert np.allclose(device.position, [1.0, 2.0, 3.0])
    assert np.allclose(device.axis((0, 1, 0)), [-1.0, 0.0, 0.0])


@pytest.mark.parametrize("record", [
    [],
    {"timestamp": 0.0, "joints": {"pinky": [0, 0, 0]}, "device": {"position": [0, 0, 0]}},
    {"timestamp": 0.0, "chirality": "both", "joints": {}, "device": {"position": [0, 0, 0]}},
    {"timestamp": "soon", "joints": {}, "device": {"position": [0, 0, 0]}},
])
def test_parse_frame_rejects_malformed(record):
    with pytest.raises(FrameFormatError):
        parse_frame(record)
