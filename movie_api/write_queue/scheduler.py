"""Background trigger for the queue processor."""
import logging
import threading

logger = logging.getLogger(__name__)


class QueueScheduler:
    """Runs processing passes on a timer and whenever ``trigger`` is called."""

    def __init__(self, processor, interval: float = 5):
        self.processor = processor
        self.interval = interval
        self.running = False
        self.thread = None
        self._wake = threading.Event()

    def start(self):
        """Start the scheduler in a background thread."""
        if self.running:
            logger.warning("Queue scheduler is already running")
            return

        self.running = True
        self._wake.clear()
        self.thread = threading.Thread(target=self._run, name="queue-scheduler", daemon=True)
        self.thread.start()
        logger.info(f"Queue scheduler started (interval: {self.interval}s)")

    def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        self.running = False
        self._wake.set()
        if self.thread:
            self.thread.join(timeout=10)
            self.thread = None
        logger.info("Queue scheduler stopped")

    def trigger(self):
        """Request an immediate pass without waiting for it."""
        self._wake.set()

    def run_once(self):
        """Run one pass on the calling thread. Errors are logged, not raised."""
        try:
            return self.processor.process_queue()
        except Exception as e:
            logger.error(f"Queue processing pass failed: {e}", exc_info=True)
            return None

    def _run(self):
        """Main scheduler loop."""
        logger.info("Queue scheduler thread started")

        while self.running:
            # Cleared before the pass so a trigger arriving during it is kept.
            self._wake.clear()
            if not self.running:
                break
            self.run_once()
            self._wake.wait(timeout=self.interval)

        logger.info("Queue scheduler thread stopped")
