"""
Per-frame selection pipeline for PalmGestureSelector.

Routes each tracked hand frame through feature extraction and that
hand's own selection state machine.
"""

from typing import Callable, Iterable, Optional

import numpy as np

from .config import SelectionThresholds
from .feature_extractor import DegeneratePlaneFitError, GestureFeatureExtractor
from .geometry import within_cone
from .hand_skeleton import Chirality, DevicePose, HandJoints
from .logger import get_logger
from .selection_state_machine import (
    SelectionEvent,
    SelectionOutput,
    SelectionState,
    SelectionStateMachine,
)

logger = get_logger("HandSelectionTracker")


class HandSelectionTracker:
    """
    Runs the point-and-grasp selection for one or both hands.

    The extractor is stateless and shared; each hand gets its own
    SelectionStateMachine, created on that hand's first frame.

    Usage:
        tracker = HandSelectionTracker()

        # Each frame, per tracked hand:
        output = tracker.process(timestamp, hand_joints, device_pose)
        if output.state == SelectionState.CONFIRMED:
            hits = tracker.targets_in_cone(output, targets)

        # Hand no longer tracked:
        tracker.drop_hand(Chirality.LEFT)
    """

    def __init__(
        self,
        extractor: Optional[GestureFeatureExtractor] = None,
        thresholds: Optional[SelectionThresholds] = None,
        hands: Iterable[Chirality] = (Chirality.LEFT, Chirality.RIGHT)
    ):
        """
        Initialize tracker.

        Args:
            extractor: Feature extractor, or None for defaults.
            thresholds: State machine thresholds shared by all hands.
            hands: Hands to process; frames of other hands are ignored.
        """
        self.extractor = extractor or GestureFeatureExtractor()
        self.thresholds = thresholds or SelectionThresholds()
        self.hands = frozenset(hands)

        self._machines: dict[Chirality, SelectionStateMachine] = {}
        self._previous_joints: dict[Chirality, HandJoints] = {}
        self._last_output: dict[Chirality, SelectionOutput] = {}
        self._skipped_frames = 0

        self._callbacks: dict[str, Optional[Callable[[SelectionEvent], None]]] = {
            "on_aim": None,
            "on_confirm": None,
            "on_release": None,
        }

        logger.info(
            f"HandSelectionTracker initialized "
            f"(hands: {', '.join(sorted(h.value for h in self.hands))})"
        )

    def set_callbacks(
        self,
        on_aim: Optional[Callable[[SelectionEvent], None]] = None,
        on_confirm: Optional[Callable[[SelectionEvent], None]] = None,
        on_release: Optional[Callable[[SelectionEvent], None]] = None
    ) -> None:
        """Set selection event callbacks for every hand."""
        self._callbacks = {
            "on_aim": on_aim,
            "on_confirm": on_confirm,
            "on_release": on_release,
        }
        for machine in self._machines.values():
            machine.set_callbacks(**self._callbacks)

    def process(
        self,
        timestamp: float,
        joints: HandJoints,
        device: DevicePose
    ) -> Optional[SelectionOutput]:
        """
        Run one frame of one hand through the pipeline.

        Args:
            timestamp: Frame time in seconds.
            joints: Joint positions of the hand (untracked joints allowed).
            device: Device pose for this frame.

        Returns:
            SelectionOutput for this hand, or None if the hand is not processed.

        Raises:
            IncompleteJointSetError: If a required joint is absent. Joints
                                     present but untracked are resolved
                                     from the previous frame instead.
        """
        hand = joints.chirality
        if hand not in self.hands:
            logger.debug(f"Ignoring frame for {hand.value} hand")
            return None

        resolved = joints.resolve_untracked(self._previous_joints.get(hand))
        self._previous_joints[hand] = resolved

        try:
            features = self.extractor.extract(resolved, device)
        except DegeneratePlaneFitError as e:
            self._skipped_frames += 1
            logger.warning(f"Skipping {hand.value} hand frame at t={timestamp:.3f}: {e}")
            return self._last_output.get(hand, SelectionOutput.idle())

        output = self._machine_for(hand).update_features(timestamp, features)
        self._last_output[hand] = output
        return output

    def _machine_for(self, hand: Chirality) -> SelectionStateMachine:
        """Get or create the state machine of a hand."""
        machine = self._machines.get(hand)
        if machine is None:
            machine = SelectionStateMachine(self.thresholds, hand=hand.value)
            machine.set_callbacks(**self._callbacks)
            self._machines[hand] = machine
            logger.debug(f"Started selection tracking for {hand.value} hand")
        return machine

    def state(self, hand: Chirality) -> SelectionState:
        """Current selection state of a hand (Idle if never seen)."""
        machine = self._machines.get(hand)
        return machine.state if machine else SelectionState.IDLE

    @staticmethod
    def targets_in_cone(output: SelectionOutput, targets: Iterable) -> list[int]:
        """
        Indices of targets inside the emitted selection cone.

        Args:
            output: Selection output of one frame.
            targets: World-space target positions.

        Returns:
            Indices of targets within the cone; empty while Idle.
        """
        if output.state == SelectionState.IDLE:
            return []
        return [
            i for i, target in enumerate(targets)
            if within_cone(output.center, output.direction, output.cone_angle, np.asarray(target))
        ]

    def drop_hand(self, hand: Chirality) -> None:
        """Forget all state of a hand that is no longer tracked."""
        self._machines.pop(hand, None)
        self._previous_joints.pop(hand, None)
        self._last_output.pop(hand, None)
        logger.debug(f"Stopped selection tracking for {hand.value} hand")

    def reset(self) -> None:
        """Forget all hands."""
        self._machines.clear()
        self._previous_joints.clear()
        self._last_output.clear()
        self._skipped_frames = 0
        logger.debug("HandSelectionTracker reset")

    @property
    def skipped_frames(self) -> int:
        """Frames dropped because no direction could be formed."""
        return self._skipped_frames
