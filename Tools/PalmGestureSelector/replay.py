"""
Replay recorded hand tracking frames through the selection pipeline.

Each line of the frames file is one JSON object:

    {"timestamp": 0.016, "chirality": "right",
     "joints": {"wrist": [x, y, z], "thumbKnuckle": [x, y, z], ...},
     "tracked": {"thumbTip": false},
     "device": {"position": [x, y, z], "quaternion": [w, x, y, z]}}

The device orientation may instead be given as "rotation" (3x3 rows);
with neither, the identity rotation is used.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence, Union

from .config import (
    EXIT_SUCCESS,
    EXIT_PROFILE_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_RUNTIME_ERROR,
)
from .feature_extractor import GestureFeatureExtractor
from .hand_skeleton import Chirality, DevicePose, HandJoints, IncompleteJointSetError, JointName
from .hand_tracker import HandSelectionTracker
from .logger import setup_logging
from .profile_loader import ProfileLoadError, create_default_profile, load_profile
from .selection_state_machine import SelectionState


class FrameFormatError(ValueError):
    """Raised when a recorded frame cannot be parsed."""
    pass


def parse_frame(data: Any) -> tuple[float, HandJoints, DevicePose]:
    """
    Parse one recorded frame.

    Args:
        data: Decoded JSON object of one line.

    Returns:
        (timestamp, hand joints, device pose).

    Raises:
        FrameFormatError: If a field is missing or malformed.
    """
    if not isinstance(data, dict):
        raise FrameFormatError("Frame must be a JSON object")

    try:
        timestamp = float(data["timestamp"])
        chirality = Chirality(str(data.get("chirality", "right")).lower())
        positions = {JointName(name): value for name, value in data["joints"].items()}
        tracked = {JointName(name): bool(flag) for name, flag in data.get("tracked", {}).items()}
        joints = HandJoints(positions=positions, chirality=chirality, tracked=tracked)

        device_data = data["device"]
        if "quaternion" in device_data:
            device = DevicePose.from_quaternion(device_data["position"], device_data["quaternion"])
        elif "rotation" in device_data:
            device = DevicePose(position=device_data["position"], rotation=device_data["rotation"])
        else:
            device = DevicePose(position=device_data["position"])
    except KeyError as e:
        raise FrameFormatError(f"Missing field: {e}")
    except (TypeError, ValueError, AttributeError) as e:
        raise FrameFormatError(f"Malformed frame: {e}")

    return timestamp, joints, device


def read_frames(frames_path: Union[str, Path]) -> Iterator[tuple[float, HandJoints, DevicePose]]:
    """
    Yield parsed frames from a JSON Lines file, skipping blank lines.

    Raises:
        FrameFormatError: On invalid JSON or frame content (with line number),
                          or if the file is not valid UTF-8.
        OSError: If the file cannot be read.
    """
    with open(frames_path, "r", encoding="utf-8") as f:
        try:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    frame = parse_frame(json.loads(line))
                except json.JSONDecodeError as e:
                    raise FrameFormatError(f"Line {line_number}: invalid JSON: {e}")
                except FrameFormatError as e:
                    raise FrameFormatError(f"Line {line_number}: {e}")
                yield frame
        except UnicodeDecodeError as e:
            # Decoding runs ahead of line splitting, so no line number
            raise FrameFormatError(f"Frames file is not valid UTF-8: {e}")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Palm Gesture Selector - replay recorded hand frames",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0  Success
  1  Profile error (file not found, invalid JSON or values)
  2  Input error (frames file unreadable or malformed)
  3  Runtime error (unexpected error)

Examples:
  palm-select-replay --frames session.jsonl
  palm-select-replay --frames session.jsonl --profile tuning.json --debug
"""
    )

    parser.add_argument(
        "--frames", "-f",
        required=True,
        help="Path to JSON Lines file of recorded frames"
    )

    parser.add_argument(
        "--profile", "-p",
        default=None,
        help="Path to JSON tuning profile (default: built-in defaults)"
    )

    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Log to console only"
    )

    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code.
    """
    args = parse_args(argv)

    logger = setup_logging(debug=args.debug, log_to_file=not args.no_log_file)
    logger.info("Palm Gesture Selector replay starting...")

    try:
        profile = load_profile(args.profile) if args.profile else create_default_profile()
    except ProfileLoadError as e:
        logger.error(f"Failed to load profile: {e}")
        return EXIT_PROFILE_ERROR

    tracker = HandSelectionTracker(
        extractor=GestureFeatureExtractor(profile.direction_blend, profile.palm_visibility),
        thresholds=profile.selection,
        hands=profile.hands
    )

    frame_count = 0
    confirmations: dict[Chirality, int] = {}
    last_state: dict[Chirality, SelectionState] = {}

    try:
        for timestamp, joints, device in read_frames(args.frames):
            output = tracker.process(timestamp, joints, device)
            frame_count += 1
            if output is None:
                continue

            hand = joints.chirality
            if output.state != last_state.get(hand, SelectionState.IDLE):
                print(f"t={timestamp:.3f} {hand.value} {output.state}")
                if output.state == SelectionState.CONFIRMED:
                    confirmations[hand] = confirmations.get(hand, 0) + 1
            last_state[hand] = output.state

    except FrameFormatError as e:
        logger.error(f"Invalid frames file: {e}")
        return EXIT_INPUT_ERROR
    except IncompleteJointSetError as e:
        logger.error(f"Invalid frames file: {e}")
        return EXIT_INPUT_ERROR
    except OSError as e:
        logger.error(f"Cannot read frames file: {e}")
        return EXIT_INPUT_ERROR
    except Exception as e:
        logger.exception(f"Runtime error: {e}")
        return EXIT_RUNTIME_ERROR

    summary = ", ".join(f"{h.value}={n}" for h, n in sorted(confirmations.items(), key=lambda kv: kv[0].value))
    logger.info(
        f"Replay finished. Processed {frame_count} frames "
        f"({tracker.skipped_frames} skipped), confirmations: {summary or 'none'}"
    )
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
