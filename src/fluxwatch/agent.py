"""
FluxWatch Agent - wires identity, API server and scheduler together
"""
import signal
import logging
import threading

from fluxwatch.commands import CommandExecutor
from fluxwatch.config import AgentConfig, VERSION
from fluxwatch.metrics import MetricsCollector
from fluxwatch.network import resolve_identity
from fluxwatch.remote import RemoteClient
from fluxwatch.scheduler import Scheduler
from fluxwatch.server import ApiServer

logger = logging.getLogger(__name__)


class Agent:
    """Main agent class"""

    def __init__(self, config=None, identity=None, collector=None, client=None, executor=None):
        self.config = config or AgentConfig.from_env()
        self.identity = identity or resolve_identity()
        self.collector = collector or MetricsCollector()
        self.client = client or RemoteClient.from_config(self.config)
        self.executor = executor or CommandExecutor(
            self.identity.device_id, grace_delay=self.config.grace_delay
        )

        self.server = ApiServer(
            self.identity, self.collector, host=self.config.host, port=self.config.port
        )
        self.scheduler = Scheduler(
            self.identity,
            self.collector,
            self.client,
            self.executor,
            registration_interval=self.config.registration_interval,
            poll_delay=self.config.poll_delay,
            poll_interval=self.config.poll_interval,
        )

        self.running = False
        self._stopped = False
        self._exit_event = threading.Event()

    def start(self):
        """Start serving and beaconing; raises AgentStartupError if the port can't be bound"""
        if self.running or self._stopped:
            return
        logger.info(f"FluxWatch v{VERSION} starting")
        logger.info(f"Device ID: {self.identity.device_id}")

        self.server.start()
        self.scheduler.start()
        self.running = True
        logger.info("Agent running")

    def stop(self):
        """One-shot transition to stopped; in-flight workers are not waited for"""
        if self._stopped:
            return
        self._stopped = True
        self.running = False
        self._exit_event.set()

        logger.info("Initiating shutdown...")
        self.scheduler.stop()
        self.server.stop()
        logger.info("FluxWatch shutdown complete")

    def request_exit(self, signum=None, frame=None):
        if signum is not None:
            logger.info(f"Received shutdown signal ({signal.Signals(signum).name})...")
        self._exit_event.set()

    def run(self):
        """Start, block until SIGINT/SIGTERM, then stop"""
        previous = {
            signum: signal.signal(signum, self.request_exit)
            for signum in (signal.SIGINT, signal.SIGTERM)
        }

        try:
            self.start()
            logger.info("Press Ctrl+C to stop...")
            while not self._exit_event.wait(1):
                pass
        finally:
            self.stop()
            for signum, handler in previous.items():
                signal.signal(signum, handler)
