# ==============================================================================
# Engagement Verdict
# ==============================================================================
"""
Pure mapping from sampled browser state to an engagement verdict.
"""

from tabpulse.core.models import EngagementReason, EngagementVerdict, IdleState


def calculate_engagement(
    idle_state: IdleState | str, audible: bool, window_focused: bool
) -> EngagementVerdict:
    """
    Decide whether the user is engaged at this sample.

    Priority order: locked, active, idle with audio, idle.

    Args:
        idle_state: active, idle or locked
        audible: Whether the focused tab is playing sound
        window_focused: Whether a browser window has OS focus

    Returns:
        EngagementVerdict with reason and confidence
    """
    state = IdleState(idle_state)

    if state == IdleState.LOCKED:
        return EngagementVerdict(is_engaged=False, reason=EngagementReason.LOCKED, confidence=1.0)

    if state == IdleState.ACTIVE:
        return EngagementVerdict(
            is_engaged=True,
            reason=EngagementReason.ACTIVE,
            confidence=1.0 if window_focused else 0.7,
        )

    # Idle but playing media counts as background listening
    if audible:
        return EngagementVerdict(is_engaged=True, reason=EngagementReason.AUDIO, confidence=0.8)

    return EngagementVerdict(is_engaged=False, reason=EngagementReason.IDLE, confidence=0.9)
