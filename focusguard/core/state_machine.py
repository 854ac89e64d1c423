"""
Focus State Machine

Pure per-tick transition function. Two dwell timers accumulate evidence of
sustained inattention (to open the redirect) and sustained attention (to
close it), with decay on neutral frames and guards against reopening or
closing too quickly.
"""

import time
from dataclasses import dataclass, replace
from typing import Optional

from .smoothing import clamp, is_finite, safe_number
from .types import (
    CalibrationSnapshot,
    FocusMachineState,
    FocusSignals,
    MachineConfig,
    Phase,
    RedirectAction,
    OPEN_REDIRECT,
    CLOSE_REDIRECT,
)


@dataclass(frozen=True)
class StepResult:
    """New state plus the action recommended for this tick, if any."""
    state: FocusMachineState
    action: Optional[RedirectAction] = None


def create_focus_state() -> FocusMachineState:
    """Initial state for a new session."""
    return FocusMachineState()


def current_reason(signals: Optional[FocusSignals]) -> str:
    """Most important reason for the current signals; diagnostic only."""
    if signals is None:
        return "no_signal"
    if signals.left_seat_like:
        return "left_seat_like"
    if not signals.face_present:
        return "face_absent"
    if not signals.torso_present:
        return "torso_absent"
    if signals.phone_like_down:
        return "phone_like_down"
    if signals.look_away:
        return "look_away"
    return "focused"


def is_hard_off_focus(signals: Optional[FocusSignals]) -> bool:
    if signals is None:
        return True
    return not signals.face_present or not signals.torso_present or signals.left_seat_like


def is_soft_off_focus(signals: Optional[FocusSignals]) -> bool:
    if signals is None:
        return False
    return signals.look_away or signals.phone_like_down


def is_strong_focus(signals: Optional[FocusSignals]) -> bool:
    if signals is None:
        return False
    return (
        signals.face_present
        and signals.torso_present
        and not signals.look_away
        and not signals.phone_like_down
        and not signals.left_seat_like
    )


def _accumulate_off_focus(off_focus_ms: float, dt_ms: float, signals: Optional[FocusSignals],
                          config: MachineConfig) -> float:
    if is_hard_off_focus(signals):
        return off_focus_ms + dt_ms * config.hard_evidence_multiplier
    if is_soft_off_focus(signals):
        return off_focus_ms + dt_ms * config.soft_evidence_multiplier
    return max(0.0, off_focus_ms - dt_ms * config.evidence_decay_multiplier)


def step_focus_state(
    prev_state: Optional[FocusMachineState],
    dt_ms: float,
    now_ms: Optional[float],
    signals: Optional[FocusSignals],
    calibration: Optional[CalibrationSnapshot] = None,
    config: Optional[MachineConfig] = None,
) -> StepResult:
    """
    Advance the focus state machine by one tick.

    Args:
        prev_state: State returned by the previous tick (None for a fresh session)
        dt_ms: Time since the previous tick; clamped to [0, max_dt_ms]
        now_ms: Current time in milliseconds; a monotonic clock is used when missing
        signals: Classifier output for this tick
        calibration: Calibration progress; keeps the previous snapshot when None
        config: Dwell thresholds and multipliers

    Returns:
        StepResult with the new state and an optional action
    """
    config = config or MachineConfig()
    state = prev_state or create_focus_state()
    if calibration is not None:
        state = replace(state, calibration=calibration)

    dt_ms = clamp(safe_number(dt_ms, 0.0), 0.0, config.max_dt_ms)
    now_ms = float(now_ms) if is_finite(now_ms) else time.monotonic() * 1000.0
    off_focus_ms = clamp(safe_number(state.off_focus_ms, 0.0), 0.0, config.off_focus_open_ms)
    refocus_ms = clamp(safe_number(state.refocus_ms, 0.0), 0.0, config.refocus_close_ms)

    if not state.calibration.complete:
        # An adopted redirect stays open until calibration ends and refocus can close it
        return StepResult(replace(
            state,
            phase=Phase.OFF_FOCUS_OPENED if state.redirect_open else Phase.CALIBRATING,
            off_focus_ms=0.0,
            refocus_ms=0.0,
            last_reason="calibrating",
        ))

    reason = current_reason(signals)
    off_focus_ms = _accumulate_off_focus(off_focus_ms, dt_ms, signals, config)

    if not state.redirect_open:
        reopen_ready = now_ms - state.last_closed_at >= config.reopen_guard_ms
        if off_focus_ms >= config.off_focus_open_ms and reopen_ready:
            opened = replace(
                state,
                phase=Phase.OFF_FOCUS_OPENED,
                off_focus_ms=config.off_focus_open_ms,
                refocus_ms=0.0,
                redirect_open=True,
                last_reason=reason,
                last_opened_at=now_ms,
            )
            return StepResult(opened, RedirectAction(OPEN_REDIRECT, reason))

        return StepResult(replace(
            state,
            phase=Phase.OFF_FOCUS_PENDING if off_focus_ms > 0 else Phase.FOCUSED,
            off_focus_ms=min(off_focus_ms, config.off_focus_open_ms),
            refocus_ms=0.0,
            last_reason=reason,
        ))

    off_focus_ms = clamp(off_focus_ms, 0.0, config.off_focus_open_ms)
    if is_strong_focus(signals):
        refocus_ms += dt_ms
    else:
        refocus_ms = max(0.0, refocus_ms - dt_ms * config.refocus_decay_multiplier)
    refocus_ms = clamp(refocus_ms, 0.0, config.refocus_close_ms)

    open_long_enough = now_ms - state.last_opened_at >= config.min_open_ms
    if refocus_ms >= config.refocus_close_ms and open_long_enough:
        closed = replace(
            state,
            phase=Phase.FOCUSED,
            off_focus_ms=0.0,
            refocus_ms=0.0,
            redirect_open=False,
            last_reason=reason,
            last_closed_at=now_ms,
        )
        return StepResult(closed, RedirectAction(CLOSE_REDIRECT))

    return StepResult(replace(
        state,
        phase=Phase.REFOCUS_PENDING if refocus_ms > 0 else Phase.OFF_FOCUS_OPENED,
        off_focus_ms=off_focus_ms,
        refocus_ms=refocus_ms,
        last_reason=reason,
    ))


def correct_failed_open(state: FocusMachineState, rollback_ms: float = 0.0) -> FocusMachineState:
    """
    Undo an open the executor could not carry out.

    Clears the redirect flag and rolls back part of the off-focus dwell so the
    normal accumulation retries the open on a later tick.
    """
    if not state.redirect_open:
        return state
    rollback_ms = max(0.0, safe_number(rollback_ms, 0.0))
    off_focus_ms = max(0.0, state.off_focus_ms - rollback_ms)
    return replace(
        state,
        redirect_open=False,
        refocus_ms=0.0,
        off_focus_ms=off_focus_ms,
        phase=Phase.OFF_FOCUS_PENDING if off_focus_ms > 0 else Phase.FOCUSED,
    )


def adopt_open_redirect(state: FocusMachineState, now_ms: float) -> FocusMachineState:
    """Take over a redirect that was already open when the session started."""
    return replace(
        state,
        redirect_open=True,
        phase=Phase.OFF_FOCUS_OPENED,
        last_opened_at=safe_number(now_ms, 0.0),
    )
