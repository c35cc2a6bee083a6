"""
In-progress attempt state
Answers, navigation position and the optional countdown of one attempt
"""
import logging
import threading

from .database import serialize_timestamp, utc_now
from .timer import Countdown

logger = logging.getLogger(__name__)


class AttemptSession:
    """One user's in-progress pass through an exam or a practice batch.

    Navigation and answer selection never raise: out-of-range moves and
    empty answers are ignored so a session cannot crash midway. Submission
    happens exactly once, either through ``submit()`` or through the
    countdown reaching zero, whichever comes first.
    """

    def __init__(self, questions, time_limit_minutes=None, submit_handler=None):
        self.questions = list(questions)
        self.question_ids = [question['id'] for question in self.questions]
        self.answers = {}
        self.current_index = 0
        self.started_at = utc_now()
        self.submit_handler = submit_handler
        self.submitted = False
        self.auto_submitted = False
        self.result = None
        self._submit_lock = threading.Lock()
        self.countdown = None
        if time_limit_minutes:
            self.countdown = Countdown(time_limit_minutes, on_expire=self._on_expire)

    @property
    def question_count(self):
        return len(self.questions)

    @property
    def current_question(self):
        if not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def answered_count(self):
        return len(self.answers)

    @property
    def remaining_seconds(self):
        """None for untimed sessions, which never expire"""
        if self.countdown is None:
            return None
        return self.countdown.remaining_seconds

    def start(self):
        if self.countdown is not None:
            self.countdown.start()

    def select_answer(self, question_id, answer_key):
        """Record or overwrite the answer for a question; position is unchanged"""
        if self.submitted or not answer_key or question_id not in self.question_ids:
            return
        self.answers[question_id] = answer_key

    def clear_answer(self, question_id):
        if not self.submitted:
            self.answers.pop(question_id, None)

    def advance(self, direction):
        """Move one question forward (direction > 0) or back (direction < 0)"""
        if direction == 0:
            return self.current_index
        target = self.current_index + (1 if direction > 0 else -1)
        if 0 <= target < self.question_count:
            self.current_index = target
        return self.current_index

    def jump_to(self, index):
        try:
            index = int(index)
        except (TypeError, ValueError):
            return self.current_index
        if 0 <= index < self.question_count:
            self.current_index = index
        return self.current_index

    def snapshot(self):
        """Answer map for submission; unanswered questions are absent"""
        return dict(self.answers)

    def submit(self):
        """Manual submission; returns None if the attempt was already submitted"""
        return self._submit(auto=False)

    def _on_expire(self):
        logger.info('Time limit reached, submitting attempt automatically')
        self._submit(auto=True)

    def _submit(self, auto):
        with self._submit_lock:
            if self.submitted:
                return None
            answers = self.snapshot()
            # A failing handler leaves the session open for a retry
            if self.submit_handler is not None:
                self.result = self.submit_handler(answers)
            else:
                self.result = answers
            self.submitted = True
            self.auto_submitted = auto
            # The countdown stays armed until a submission has gone through
            if self.countdown is not None:
                self.countdown.cancel()
            return self.result

    def to_dict(self):
        """Serializable view of the in-progress state"""
        return {
            'questionIds': list(self.question_ids),
            'answers': {str(question_id): answer for question_id, answer in self.answers.items()},
            'currentIndex': self.current_index,
            'remainingSeconds': self.remaining_seconds,
            'startedAt': serialize_timestamp(self.started_at),
            'submitted': self.submitted,
        }
