"""
Selection state machine for PalmGestureSelector.

Turns the noisy per-frame straightness signal into a stable
Idle -> Aiming -> Confirmed lifecycle. A bounded window of recent
records smooths the aiming geometry and is scanned for the abrupt
straightness drop of a grasp.
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, NamedTuple, Optional

import numpy as np

from .config import SelectionThresholds
from .feature_extractor import GestureFeatures
from .geometry import as_vector
from .logger import get_logger

logger = get_logger("SelectionStateMachine")


class SelectionState(Enum):
    """Selection lifecycle state."""
    IDLE = auto()       # Hand not yet opened
    AIMING = auto()     # Open palm, emitting smoothed geometry
    CONFIRMED = auto()  # Grasp detected, emitting frozen selection

    def __str__(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class Record:
    """Retained copy of one frame's features."""
    timestamp: float
    center: np.ndarray
    direction: np.ndarray
    cone_angle: float
    straightness: float


class SelectionOutput(NamedTuple):
    """Representative selection geometry for one frame."""
    state: SelectionState
    center: np.ndarray
    cone_angle: float
    direction: np.ndarray

    @classmethod
    def idle(cls) -> "SelectionOutput":
        return cls(SelectionState.IDLE, np.zeros(3), 0.0, np.zeros(3))


@dataclass
class SelectionEvent:
    """Event emitted when the selection state changes."""
    event_type: str  # "aim", "confirm", "release"
    state: SelectionState
    timestamp: float
    center: np.ndarray
    cone_angle: float
    direction: np.ndarray
    hand: Optional[str] = None


class SelectionStateMachine:
    """
    Tracks one hand's point-and-grasp selection.

    Transitions:
    - Idle -> Aiming: straightness > selecting_threshold
    - Aiming -> Confirmed: abrupt straightness drop inside the window;
      the record capture_offset frames before the drop point is frozen
      as the selection and the window is cleared
    - Confirmed -> Aiming: straightness > ungrasp_threshold

    There is no path back to Idle once aiming has started.

    Usage:
        machine = SelectionStateMachine()

        # Each frame:
        state, center, cone_angle, direction = machine.update(
            timestamp, center, direction, cone_angle, straightness
        )
    """

    def __init__(self, thresholds: Optional[SelectionThresholds] = None, hand: Optional[str] = None):
        """
        Initialize selection state machine.

        Args:
            thresholds: Window sizes and thresholds, or None for defaults.
            hand: Optional hand label attached to emitted events.
        """
        self.thresholds = thresholds or SelectionThresholds()
        self.hand = hand

        self._records: deque[Record] = deque(maxlen=self.thresholds.window_size)
        self._state = SelectionState.IDLE
        self._selection: Optional[Record] = None

        # Event callbacks
        self._on_aim: Optional[Callable[[SelectionEvent], None]] = None
        self._on_confirm: Optional[Callable[[SelectionEvent], None]] = None
        self._on_release: Optional[Callable[[SelectionEvent], None]] = None

        logger.debug(
            f"SelectionStateMachine initialized (window={self.thresholds.window_size}, "
            f"drop={self.thresholds.drop_window_size}, "
            f"capture_offset={self.thresholds.capture_offset})"
        )

    def set_callbacks(
        self,
        on_aim: Optional[Callable[[SelectionEvent], None]] = None,
        on_confirm: Optional[Callable[[SelectionEvent], None]] = None,
        on_release: Optional[Callable[[SelectionEvent], None]] = None
    ) -> None:
        """
        Set event callbacks.

        Args:
            on_aim: Called when Idle -> Aiming.
            on_confirm: Called when Aiming -> Confirmed.
            on_release: Called when Confirmed -> Aiming.
        """
        self._on_aim = on_aim
        self._on_confirm = on_confirm
        self._on_release = on_release

    def update(
        self,
        timestamp: float,
        center,
        direction,
        cone_angle: float,
        straightness: float
    ) -> SelectionOutput:
        """
        Add one frame and advance the state machine.

        Args:
            timestamp: Frame time in seconds.
            center: Palm center.
            direction: Pointing direction.
            cone_angle: Selection cone half-angle in radians.
            straightness: Finger straightness.

        Returns:
            SelectionOutput (state, center, cone_angle, direction).
        """
        self._records.append(Record(
            timestamp=timestamp,
            center=as_vector(center),
            direction=as_vector(direction),
            cone_angle=float(cone_angle),
            straightness=float(straightness)
        ))

        event_type: Optional[str] = None

        if self._state == SelectionState.IDLE:
            if straightness > self.thresholds.selecting_threshold:
                self._state = SelectionState.AIMING
                self._selection = None
                event_type = "aim"

        elif self._state == SelectionState.AIMING:
            pre_drop = self._find_abrupt_drop()
            if pre_drop is not None:
                self._state = SelectionState.CONFIRMED
                self._selection = pre_drop
                self._records.clear()
                event_type = "confirm"

        elif self._state == SelectionState.CONFIRMED:
            if straightness > self.thresholds.ungrasp_threshold:
                self._state = SelectionState.AIMING
                self._selection = None
                event_type = "release"

        output = self._representative_output()

        if event_type:
            logger.info(f"Selection {event_type} -> {self._state} at t={timestamp:.3f}")
            self._fire_callback(SelectionEvent(
                event_type=event_type,
                state=self._state,
                timestamp=timestamp,
                center=output.center,
                cone_angle=output.cone_angle,
                direction=output.direction,
                hand=self.hand
            ))

        return output

    def update_features(self, timestamp: float, features: GestureFeatures) -> SelectionOutput:
        """Advance the state machine with an extractor result."""
        return self.update(
            timestamp,
            features.center,
            features.direction,
            features.cone_angle,
            features.straightness
        )

    def _representative_output(self) -> SelectionOutput:
        """Geometry emitted for the current state."""
        if self._state == SelectionState.AIMING:
            count = len(self._records)
            center = sum(r.center for r in self._records) / count
            cone_angle = sum(r.cone_angle for r in self._records) / count
            direction = sum(r.direction for r in self._records) / count
            return SelectionOutput(self._state, center, cone_angle, direction)

        if self._state == SelectionState.CONFIRMED:
            selection = self._selection
            return SelectionOutput(
                self._state,
                selection.center.copy(),
                selection.cone_angle,
                selection.direction.copy()
            )

        return SelectionOutput.idle()

    def _find_abrupt_drop(self) -> Optional[Record]:
        """
        Scan the window newest to oldest for a fast straightness drop.

        A drop at index i means straightness fell by more than
        grasp_threshold over the preceding drop_window_size records.

        Returns:
            The record capture_offset records before the drop point, or None.
        """
        drop = self.thresholds.drop_window_size
        if len(self._records) <= drop:
            return None

        records = self._records
        for i in range(len(records) - 1, drop - 1, -1):
            if records[i - drop].straightness - records[i].straightness > self.thresholds.grasp_threshold:
                logger.debug(
                    f"Abrupt drop at window index {i}: "
                    f"{records[i - drop].straightness:.2f} -> {records[i].straightness:.2f}"
                )
                return records[i - self.thresholds.capture_offset]
        return None

    def _fire_callback(self, event: SelectionEvent) -> None:
        """Fire appropriate callback for event."""
        try:
            if event.event_type == "aim" and self._on_aim:
                self._on_aim(event)
            elif event.event_type == "confirm" and self._on_confirm:
                self._on_confirm(event)
            elif event.event_type == "release" and self._on_release:
                self._on_release(event)
        except Exception as e:
            logger.error(f"Error in selection callback: {e}")

    @property
    def state(self) -> SelectionState:
        """Get current selection state."""
        return self._state

    @property
    def selection(self) -> Optional[Record]:
        """Frozen pre-grasp record while Confirmed, else None."""
        return self._selection

    @property
    def window_length(self) -> int:
        """Number of records currently retained."""
        return len(self._records)

    def reset(self) -> None:
        """Return to Idle and forget all records."""
        self._records.clear()
        self._state = SelectionState.IDLE
        self._selection = None
        logger.debug("SelectionStateMachine reset")
