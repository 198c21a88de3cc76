"""Stream state machine for broadcaster and viewer connection status."""

from loguru import logger

from app.schemas import StreamState
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


class StreamStateMachine:
    """State machine for broadcaster/viewer connection status.

    State flow with triggers:
    - IDLE -> CONNECTING (broadcaster start_stream() / viewer join())
    - CONNECTING -> LIVE (broadcaster announced ready / viewer received first track)
                 | IDLE (media access denied)
                 | ENDED (stream ended before media arrived)
    - LIVE -> ENDED (stop_stream() / stream-ended / leave())
    - ENDED -> CONNECTING (restart / re-join)

    There is no terminal state: both controllers can be reused.
    """

    TRANSITIONS: dict[StreamState, set[StreamState]] = {
        StreamState.IDLE: {StreamState.CONNECTING},
        StreamState.CONNECTING: {
            StreamState.LIVE,
            StreamState.IDLE,
            StreamState.ENDED,
        },
        StreamState.LIVE: {StreamState.ENDED},
        StreamState.ENDED: {StreamState.CONNECTING},
    }

    @classmethod
    def can_transition(cls, current: StreamState, new: StreamState) -> bool:
        """Check if state transition is valid.

        Args:
            current: Current state
            new: Target state to transition to

        Returns:
            True if transition is valid, False otherwise
        """
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def get_valid_transitions(cls, state: StreamState) -> set[StreamState]:
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: StreamState) -> set[StreamState]:
        return {state for state, targets in cls.TRANSITIONS.items() if target in targets}

    @classmethod
    def transition(cls, current: StreamState, new: StreamState, *, owner: str = "") -> StreamState:
        """Validate a transition and return the new state.

        Moving to the current state is a no-op.

        Raises:
            AppError: If the transition is not allowed
        """
        if current == new:
            return current

        if not cls.can_transition(current, new):
            raise AppError(
                errcode=AppErrorCode.E_INVALID_STATE_TRANSITION,
                errmesg=f"Invalid state transition for {owner or 'stream'}: {current} -> {new}",
                status_code=HttpStatusCode.CONFLICT,
            )

        logger.debug("{} state {} -> {}", owner or "stream", current, new)
        return new
