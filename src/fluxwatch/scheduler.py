"""
Scheduler - Periodic registration and command polling

Each trigger has its own clock thread. A tick never runs its work on the
clock thread: it starts a fresh worker, so a slow network call can neither
delay the next tick nor the other trigger. Overlapping workers of the same
trigger are allowed.
"""
import logging
import threading

logger = logging.getLogger(__name__)


class PeriodicTrigger:
    """Fires `action` on a new thread after `first_delay`, then every `interval`"""

    def __init__(self, name, interval, action, first_delay=0.0):
        self.name = name
        self.interval = interval
        self.action = action
        self.first_delay = first_delay
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._clock_loop, name=f"{self.name}-clock", daemon=True)
        self._thread.start()
        logger.info(f"{self.name} timer started ({self.interval}s interval)")

    def stop(self):
        """Stop firing; workers already started are left to finish on their own"""
        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
        self._thread = None

    def _clock_loop(self):
        delay = self.first_delay
        while not self._stop_event.wait(delay):
            self.fire()
            delay = self.interval

    def fire(self):
        worker = threading.Thread(target=self._run_action, name=f"{self.name}-worker", daemon=True)
        worker.start()
        return worker

    def _run_action(self):
        try:
            self.action()
        except Exception:
            logger.exception(f"{self.name} tick failed")


class Scheduler:
    """Owns the registration and command-poll triggers"""

    def __init__(self, identity, collector, client, executor,
                 registration_interval=30, poll_delay=2, poll_interval=5):
        self.identity = identity
        self.collector = collector
        self.client = client
        self.executor = executor

        self.registration = PeriodicTrigger(
            'registration', registration_interval, self.register_once, first_delay=0
        )
        self.command_poll = PeriodicTrigger(
            'command-poll', poll_interval, self.poll_once, first_delay=poll_delay
        )

    def start(self):
        self.registration.start()
        self.command_poll.start()

    def stop(self):
        self.registration.stop()
        self.command_poll.stop()

    def register_once(self):
        """Collect a fresh snapshot and register it"""
        snapshot = self.collector.collect()
        self.client.register_device(self.identity, snapshot)

    def poll_once(self):
        """Poll for a command; if one arrives, execute it and report the result"""
        command = self.client.poll_for_command(self.identity.device_id)
        if command is None:
            return None

        result = self.executor.execute(command)
        self.client.report_command_result(result)
        return result
