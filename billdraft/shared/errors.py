"""Exception hierarchy shared across services."""


class BilldraftError(Exception):
    """Base class for all errors raised by billdraft services."""


class ModelError(BilldraftError):
    """The generative model call failed (transport, timeout, empty reply)."""


class ModelResponseError(ModelError):
    """The model replied, but the reply could not be decoded into a JSON object."""


class ProfileNotFoundError(BilldraftError):
    """No business profile exists for the user; extraction cannot proceed."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Business profile not found for user: {user_id}")
        self.user_id = user_id


class ClientExtractionError(BilldraftError):
    """Client-only extraction produced no usable client."""


class InvalidTransitionError(BilldraftError):
    """A workflow event is not valid in the current workflow state."""
