"""
Countdown controller for timed exams
"""
import logging
import threading
import time

logger = logging.getLogger(__name__)


class Countdown:
    """Cooperative one-second countdown owned by a single attempt session.

    ``tick()`` is driven by whoever owns the session, normally ``run()``
    which ticks once per elapsed wall-clock second. Missed ticks are not
    caught up. When the remaining time reaches zero ``on_expire`` fires
    exactly once; after ``cancel()`` it never fires.
    """

    def __init__(self, time_limit_minutes, on_expire=None):
        if time_limit_minutes is None or time_limit_minutes <= 0:
            raise ValueError('time limit must be a positive number of minutes')
        self.time_limit_seconds = int(time_limit_minutes * 60)
        self.remaining_seconds = self.time_limit_seconds
        self.on_expire = on_expire
        self.started = False
        self.cancelled = False
        self.expired = False
        self._lock = threading.Lock()

    @property
    def running(self):
        return self.started and not self.cancelled and not self.expired

    def start(self):
        with self._lock:
            if self.cancelled or self.expired:
                return False
            self.started = True
            return True

    def tick(self):
        """Advance by one second; returns the remaining seconds"""
        with self._lock:
            if not self.running:
                return self.remaining_seconds
            self.remaining_seconds -= 1
            fire = self.remaining_seconds <= 0
            if fire:
                self.remaining_seconds = 0
                self.expired = True

        if fire:
            logger.info('Countdown expired')
            if self.on_expire is not None:
                self.on_expire()
        return self.remaining_seconds

    def cancel(self):
        """Tear the countdown down; returns False if it already expired"""
        with self._lock:
            if self.expired:
                return False
            self.cancelled = True
            return True

    def run(self, sleep=time.sleep, interval=1.0):
        """Tick once per interval until the countdown expires or is cancelled"""
        self.start()
        while self.running:
            sleep(interval)
            self.tick()
        return self.expired
