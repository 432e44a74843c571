"""
Command Executor - Handles commands pushed from the central server

Reboot and shutdown are acknowledged immediately and carried out after a
short grace delay on a detached timer, giving the result time to reach the
server. Once scheduled they cannot be cancelled.
"""
import logging
import subprocess
import threading

from fluxwatch.models import CommandResult, RESULT_COMPLETED, RESULT_UNKNOWN

logger = logging.getLogger(__name__)

GRACE_DELAY = 2.0


def run_system_command(argv):
    """Launch an OS command without waiting for it"""
    try:
        subprocess.Popen(
            argv,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL
        )
        logger.info(f"Executed {' '.join(argv)}")
    except OSError as e:
        logger.error(f"Execute command error: {e}")


class CommandExecutor:
    """Dispatches a command by action name"""

    def __init__(self, device_id, grace_delay=GRACE_DELAY, runner=run_system_command):
        self.device_id = device_id
        self.grace_delay = grace_delay
        self.runner = runner
        self.handlers = {
            'ping': self.cmd_ping,
            'reboot': self.cmd_reboot,
            'shutdown': self.cmd_shutdown,
            'update': self.cmd_update,
        }

    def execute(self, command) -> CommandResult:
        logger.info(f"Processing command: {command.action} (ID: {command.command_id})")

        handler = self.handlers.get(command.action.lower())
        if handler is None:
            logger.info(f"Unknown command received: {command.action}")
            result, message = RESULT_UNKNOWN, f"Unknown command: {command.action}"
        else:
            result, message = RESULT_COMPLETED, handler()

        return CommandResult(
            command_id=command.command_id,
            device_id=self.device_id,
            result=result,
            message=message,
        )

    def cmd_ping(self):
        return 'pong'

    def cmd_reboot(self):
        self.schedule(['reboot'])
        return 'Reboot initiated'

    def cmd_shutdown(self):
        self.schedule(['poweroff'])
        return 'Shutdown initiated'

    def cmd_update(self):
        # Placeholder until self-update is wired to a download endpoint
        return 'Update check initiated'

    def schedule(self, argv):
        """Run argv once the grace delay has elapsed"""
        timer = threading.Timer(self.grace_delay, self.runner, args=(argv,))
        timer.daemon = True
        timer.start()
        logger.info(f"Scheduled {' '.join(argv)} in {self.grace_delay}s")
        return timer
