"""Background scheduler for periodic evaluation cycles."""
import logging
import threading
import schedule
import time

logger = logging.getLogger("netalert.scheduler")


class CycleScheduler:
    def __init__(self, engine, interval_seconds=60):
        self.engine = engine
        self.interval = interval_seconds
        self._scheduler = schedule.Scheduler()
        self._thread = None
        self._running = False
        self._callbacks = []
        self.consecutive_failures = 0

    def on_cycle(self, callback):
        """Register callback called with the new alerts after each successful cycle."""
        self._callbacks.append(callback)

    def start(self):
        """Start periodic cycles on a daemon thread."""
        if self._running:
            return
        self._running = True

        self._scheduler.every(self.interval).seconds.do(self._cycle_job)

        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()
        logger.info(f"Scheduler started (every {self.interval}s)")

    def stop(self):
        self._running = False
        self._scheduler.clear()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Scheduler stopped")

    @property
    def running(self):
        return self._running

    def trigger(self):
        """Run one cycle now. Serialized with scheduled cycles by the engine lock."""
        return self._cycle_job()

    def _run_loop(self):
        # Initial cycle immediately
        self._cycle_job()
        while self._running:
            self._scheduler.run_pending()
            time.sleep(1)

    def _cycle_job(self):
        try:
            alerts = self.engine.run_cycle()
        except Exception as e:
            # Next attempt happens on the normal interval, not immediately
            self.consecutive_failures += 1
            logger.error(f"Cycle failed ({self.consecutive_failures} consecutive): {e}")
            if self.consecutive_failures >= 5:
                logger.critical("5+ consecutive cycle failures!")
            return None

        self.consecutive_failures = 0
        for cb in self._callbacks:
            try:
                cb(alerts)
            except Exception as e:
                logger.warning(f"Callback error: {e}")
        return alerts
