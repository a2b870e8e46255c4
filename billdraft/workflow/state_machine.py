"""Clarification workflow as an explicit finite-state machine.

States carry only the data valid in that state, and ``transition`` is a pure
function of (state, event). ``ClarificationWorkflow`` drives the machine and
performs the one side effect, the extraction call, between entering
``processing`` and feeding back the completion or failure event.

    input --SubmitText--> processing
    processing --ExtractionCompleted--> clarification | review (first pass)
    processing --ExtractionCompleted--> review (after clarification)
    processing --ExtractionFailed--> review (prior result exists) | error
    clarification --AnswerClarification--> clarification
    clarification --SubmitClarifications--> processing
    review --EditResult--> input
    any --Reset--> input
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import ClassVar, Protocol

from billdraft.extraction.fallback import is_fallback_result
from billdraft.extraction.schema import DocumentType, ParseResult, RawInput
from billdraft.shared.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class WorkflowStatus(str, Enum):
    """Observable workflow status."""

    INPUT = "input"
    PROCESSING = "processing"
    CLARIFICATION = "clarification"
    REVIEW = "review"
    ERROR = "error"


# States


@dataclass(frozen=True)
class InputState:
    """Waiting for text. ``draft_text`` pre-fills the input after an edit."""

    status: ClassVar[WorkflowStatus] = WorkflowStatus.INPUT

    draft_text: str = ""


@dataclass(frozen=True)
class ProcessingState:
    """Extraction in flight for ``request``."""

    status: ClassVar[WorkflowStatus] = WorkflowStatus.PROCESSING

    request: RawInput
    original_text: str
    prior_result: ParseResult | None = None


@dataclass(frozen=True)
class ClarificationState:
    """Waiting for one answer per clarification question."""

    status: ClassVar[WorkflowStatus] = WorkflowStatus.CLARIFICATION

    result: ParseResult
    original_text: str
    user_id: str
    document_type: DocumentType
    answers: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ReviewState:
    """Final result ready for review."""

    status: ClassVar[WorkflowStatus] = WorkflowStatus.REVIEW

    result: ParseResult
    original_text: str
    user_id: str
    document_type: DocumentType


@dataclass(frozen=True)
class ErrorState:
    """Extraction failed and no earlier result exists to fall back on."""

    status: ClassVar[WorkflowStatus] = WorkflowStatus.ERROR

    message: str
    original_text: str
    user_id: str
    document_type: DocumentType


WorkflowState = InputState | ProcessingState | ClarificationState | ReviewState | ErrorState


# Events


@dataclass(frozen=True)
class SubmitText:
    text: str
    user_id: str
    document_type: DocumentType


@dataclass(frozen=True)
class ExtractionCompleted:
    result: ParseResult


@dataclass(frozen=True)
class ExtractionFailed:
    message: str


@dataclass(frozen=True)
class AnswerClarification:
    index: int
    value: str


@dataclass(frozen=True)
class SubmitClarifications:
    pass


@dataclass(frozen=True)
class EditResult:
    pass


@dataclass(frozen=True)
class Reset:
    pass


WorkflowEvent = (
    SubmitText
    | ExtractionCompleted
    | ExtractionFailed
    | AnswerClarification
    | SubmitClarifications
    | EditResult
    | Reset
)


def build_clarified_text(original_text: str, questions: list[str], answers: list[str]) -> str:
    """Append each question with its answer to the original text."""
    lines = [original_text, "---", "Additional Information:"]
    lines.extend(f"{question} {answer}" for question, answer in zip(questions, answers))
    return "\n".join(lines)


def _on_extraction_completed(state: ProcessingState, result: ParseResult) -> WorkflowState:
    request = state.request
    # One clarification round only; a re-extraction always goes to review
    if (
        state.prior_result is None
        and result.needs_clarification
        and result.clarification_questions
    ):
        return ClarificationState(
            result=result,
            original_text=state.original_text,
            user_id=request.user_id,
            document_type=request.document_type,
            answers=("",) * len(result.clarification_questions),
        )
    return ReviewState(
        result=result,
        original_text=state.original_text,
        user_id=request.user_id,
        document_type=request.document_type,
    )


def _on_extraction_failed(state: ProcessingState, message: str) -> WorkflowState:
    request = state.request
    if state.prior_result is None:
        return ErrorState(
            message=message,
            original_text=state.original_text,
            user_id=request.user_id,
            document_type=request.document_type,
        )

    # A usable first-pass result exists; show it instead of an error
    recovered = state.prior_result.model_copy(
        update={"needs_clarification": False, "raw_text": request.text}
    )
    return ReviewState(
        result=recovered,
        original_text=state.original_text,
        user_id=request.user_id,
        document_type=request.document_type,
    )


def _on_clarification_event(state: ClarificationState, event: WorkflowEvent) -> WorkflowState:
    if isinstance(event, AnswerClarification):
        if not 0 <= event.index < len(state.answers):
            raise InvalidTransitionError(
                f"No clarification question at index {event.index} "
                f"({len(state.answers)} questions)"
            )
        answers = list(state.answers)
        answers[event.index] = event.value
        return replace(state, answers=tuple(answers))

    if isinstance(event, SubmitClarifications):
        if any(not answer.strip() for answer in state.answers):
            raise InvalidTransitionError("All clarification questions must be answered")
        enhanced_text = build_clarified_text(
            state.original_text, state.result.clarification_questions, list(state.answers)
        )
        return ProcessingState(
            request=RawInput(
                text=enhanced_text,
                user_id=state.user_id,
                document_type=state.document_type,
            ),
            original_text=state.original_text,
            prior_result=state.result,
        )

    raise InvalidTransitionError(
        f"Cannot handle {type(event).__name__} in state '{state.status.value}'"
    )


def transition(state: WorkflowState, event: WorkflowEvent) -> WorkflowState:
    """Compute the next workflow state.

    Args:
        state: Current state
        event: Event to apply

    Returns:
        Next state (states are immutable; the input state is never modified)

    Raises:
        InvalidTransitionError: If the event is not valid in the current state
    """
    if isinstance(event, Reset):
        return InputState()

    if isinstance(state, InputState) and isinstance(event, SubmitText):
        if not event.text.strip():
            raise InvalidTransitionError("Cannot submit empty text")
        request = RawInput(
            text=event.text, user_id=event.user_id, document_type=event.document_type
        )
        return ProcessingState(request=request, original_text=event.text)

    if isinstance(state, ProcessingState):
        if isinstance(event, ExtractionCompleted):
            return _on_extraction_completed(state, event.result)
        if isinstance(event, ExtractionFailed):
            return _on_extraction_failed(state, event.message)

    if isinstance(state, ClarificationState):
        return _on_clarification_event(state, event)

    if isinstance(state, ReviewState) and isinstance(event, EditResult):
        return InputState(draft_text=state.original_text)

    raise InvalidTransitionError(
        f"Cannot handle {type(event).__name__} in state '{state.status.value}'"
    )


class Extractor(Protocol):
    """Anything that can turn text into a ParseResult (e.g. ExtractionService)."""

    def extract(self, text: str, user_id: str, document_type: DocumentType) -> ParseResult:
        ...


class ClarificationWorkflow:
    """Single-owner driver for the clarification state machine.

    Extraction runs synchronously inside ``submit_text`` and
    ``submit_clarifications``, so a second submission can never overlap a
    running one.
    """

    def __init__(self, extractor: Extractor) -> None:
        """Initialize the workflow in the input state.

        Args:
            extractor: Extraction service used for first pass and re-extraction
        """
        self.extractor = extractor
        self._state: WorkflowState = InputState()

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def status(self) -> WorkflowStatus:
        return self._state.status

    @property
    def result(self) -> ParseResult | None:
        """Result shown to the user, if the current state has one."""
        if isinstance(self._state, ClarificationState | ReviewState):
            return self._state.result
        return None

    @property
    def answers(self) -> tuple[str, ...]:
        if isinstance(self._state, ClarificationState):
            return self._state.answers
        return ()

    def dispatch(self, event: WorkflowEvent) -> WorkflowState:
        """Apply an event and store the resulting state."""
        previous = self._state.status
        self._state = transition(self._state, event)
        logger.debug(f"Workflow {previous.value} -> {self._state.status.value} on {event!r}")
        return self._state

    def submit_text(self, text: str, user_id: str, document_type: DocumentType) -> WorkflowState:
        """Submit the user's text and run the first extraction pass."""
        self.dispatch(SubmitText(text=text, user_id=user_id, document_type=document_type))
        return self._run_extraction()

    def answer_clarification(self, index: int, value: str) -> WorkflowState:
        """Record the answer to one clarification question."""
        return self.dispatch(AnswerClarification(index=index, value=value))

    def submit_clarifications(self) -> WorkflowState:
        """Re-run extraction with the clarification answers appended."""
        self.dispatch(SubmitClarifications())
        return self._run_extraction()

    def edit_result(self) -> WorkflowState:
        """Go back to the input step with the original text available."""
        return self.dispatch(EditResult())

    def reset(self) -> WorkflowState:
        """Start over, clearing all accumulated state."""
        return self.dispatch(Reset())

    def _run_extraction(self) -> WorkflowState:
        state = self._state
        if not isinstance(state, ProcessingState):
            raise InvalidTransitionError(f"Cannot extract in state '{state.status.value}'")

        request = state.request
        try:
            result = self.extractor.extract(request.text, request.user_id, request.document_type)
        except Exception as e:
            logger.warning(f"Extraction failed in workflow: {e}")
            return self.dispatch(ExtractionFailed(message=str(e)))

        # The extractor degrades model failures to the fallback draft
        if state.prior_result is not None and is_fallback_result(result):
            logger.warning("Re-extraction fell back; keeping the earlier result")
            return self.dispatch(ExtractionFailed(message="Re-extraction failed"))
        return self.dispatch(ExtractionCompleted(result=result))
