"""
Client-held state machine for one timed exam attempt.

    NOT_STARTED -> IN_PROGRESS -> SUBMITTING -> GRADED
                                      |   ^
                                      v   |  (explicit retry)
                                     FAILED

The countdown is a single asyncio task that ticks once per second while
the attempt is IN_PROGRESS. Manual submit and the auto-submit fired by the
last tick go through the same single-flight path, so at most one grading
request is ever in flight for an attempt. Nothing is saved server side
before submission: closing an unsubmitted attempt abandons it.
"""
import asyncio
import enum
import logging
import uuid
from typing import Awaitable, Callable, Dict, Optional, Union

from ..exceptions import AttemptStateError, ExamEngineError, ValidationError
from ..schemas.exam_schema import ExamRedacted
from ..schemas.result_schema import SubmitResponse

logger = logging.getLogger(__name__)


class AttemptState(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    GRADED = "graded"
    FAILED = "failed"


TRANSITIONS = {
    AttemptState.NOT_STARTED: frozenset({AttemptState.IN_PROGRESS}),
    AttemptState.IN_PROGRESS: frozenset({AttemptState.SUBMITTING}),
    AttemptState.SUBMITTING: frozenset({AttemptState.GRADED, AttemptState.FAILED}),
    AttemptState.FAILED: frozenset({AttemptState.SUBMITTING}),
    AttemptState.GRADED: frozenset(),
}


def format_time(seconds: int) -> str:
    """Countdown display, minutes:seconds with two digit seconds."""
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins}:{secs:02d}"


class AttemptSession:
    def __init__(
        self,
        client,
        exam: ExamRedacted,
        *,
        tick_interval: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_change: Optional[Callable[["AttemptSession"], None]] = None,
    ):
        self.client = client
        self.exam = exam
        # sent with every submit of this attempt so a retried request is graded once
        self.attempt_id = uuid.uuid4()
        self.remaining_seconds = exam.duration * 60
        self.answers: Dict[str, int] = {}
        self.state = AttemptState.NOT_STARTED
        self.result: Optional[SubmitResponse] = None
        self.error: Optional[ExamEngineError] = None
        self.auto_submitted = False

        self._option_counts = {str(q.id): len(q.options) for q in exam.questions}
        self._tick_interval = tick_interval
        self._sleep = sleep
        self._on_change = on_change
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Future] = None
        self._closed = False

    @classmethod
    async def load(cls, client, exam_id: Union[str, uuid.UUID], **kwargs) -> "AttemptSession":
        """Fetch the redacted exam and build a session waiting for start()."""
        exam = await client.get_exam(exam_id)
        return cls(client, exam, **kwargs)

    @property
    def started(self) -> bool:
        return self.state is not AttemptState.NOT_STARTED

    @property
    def submitting(self) -> bool:
        return self.state is AttemptState.SUBMITTING

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def display(self) -> str:
        return format_time(self.remaining_seconds)

    def _transition(self, target: AttemptState):
        if target not in TRANSITIONS[self.state]:
            raise AttemptStateError(f"Cannot go from {self.state.value} to {target.value}")
        logger.debug("Attempt %s: %s -> %s", self.attempt_id, self.state.value, target.value)
        self.state = target
        self._changed()

    def _changed(self):
        if self._on_change is not None:
            self._on_change(self)

    def _ensure_open(self):
        if self._closed:
            raise AttemptStateError("Attempt session is closed")

    def start(self, run_timer: bool = True):
        """The student's explicit "Start Exam". The clock does not run before this."""
        self._ensure_open()
        self._transition(AttemptState.IN_PROGRESS)
        if run_timer:
            self._timer = asyncio.get_running_loop().create_task(self._countdown())

    async def _countdown(self):
        while self.state is AttemptState.IN_PROGRESS:
            await self._sleep(self._tick_interval)
            self.tick()

    def tick(self) -> int:
        """One second elapsed. Reaching zero fires the auto-submit, once."""
        if self.state is not AttemptState.IN_PROGRESS:
            return self.remaining_seconds
        self.remaining_seconds = max(0, self.remaining_seconds - 1)
        self._changed()
        if self.remaining_seconds == 0:
            logger.info("Attempt %s ran out of time, auto-submitting", self.attempt_id)
            self.auto_submitted = True
            self._begin_submit()
        return self.remaining_seconds

    def select_answer(self, question_id, option_index: int):
        self._ensure_open()
        if self.state is not AttemptState.IN_PROGRESS:
            raise AttemptStateError(f"Answers cannot be changed while {self.state.value}")
        qid = str(question_id)
        count = self._option_counts.get(qid)
        if count is None:
            raise ValidationError(f"Question {qid} is not part of this exam")
        if isinstance(option_index, bool) or not isinstance(option_index, int) or not 0 <= option_index < count:
            raise ValidationError(f"Option index must be between 0 and {count - 1}")
        self.answers[qid] = option_index
        self._changed()

    def _begin_submit(self) -> asyncio.Future:
        # The guard and the state change happen before anything awaits, so a
        # second caller in the same loop turn always finds the first request.
        if self.state is AttemptState.SUBMITTING:
            return self._inflight
        self._transition(AttemptState.SUBMITTING)
        self._stop_countdown()
        self.error = None
        self._inflight = asyncio.ensure_future(self._send(dict(self.answers)))
        return self._inflight

    async def _send(self, answers: Dict[str, int]) -> Optional[SubmitResponse]:
        try:
            result = await self.client.submit_attempt(self.exam.id, answers, attempt_id=self.attempt_id)
        except ExamEngineError as e:
            logger.warning("Attempt %s submit failed: %s", self.attempt_id, e)
            self.error = e
            self._transition(AttemptState.FAILED)
            return None
        except Exception as e:
            logger.exception("Attempt %s submit crashed", self.attempt_id)
            self.error = ExamEngineError(str(e))
            self._transition(AttemptState.FAILED)
            return None
        self.result = result
        self._transition(AttemptState.GRADED)
        return result

    async def submit(self) -> SubmitResponse:
        """
        Manual submit. Joins the request already in flight if there is one
        (double click, or the timer got there first). Raises the request's
        error when grading fails; the attempt then waits in FAILED for retry().
        """
        self._ensure_open()
        if self.state is AttemptState.GRADED:
            return self.result
        inflight = self._begin_submit()
        await asyncio.shield(inflight)
        if self.state is AttemptState.FAILED:
            raise self.error
        return self.result

    async def retry(self) -> SubmitResponse:
        if self.state is not AttemptState.FAILED:
            raise AttemptStateError(f"Nothing to retry while {self.state.value}")
        return await self.submit()

    async def wait(self) -> Optional[SubmitResponse]:
        """Wait for the submission in flight, if any, without raising its error."""
        if self._inflight is not None:
            await asyncio.shield(self._inflight)
        return self.result

    def _stop_countdown(self):
        timer, self._timer = self._timer, None
        # the last tick runs inside the timer task itself, it ends on its own
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    def close(self):
        """Teardown. Stops the clock; an attempt that was never submitted leaves no trace."""
        if self.state in (AttemptState.NOT_STARTED, AttemptState.IN_PROGRESS):
            logger.info("Attempt %s abandoned with %ss left", self.attempt_id, self.remaining_seconds)
        self._stop_countdown()
        self._closed = True
