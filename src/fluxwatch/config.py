"""
Agent configuration
"""
import os
import logging
from dataclasses import dataclass

from fluxwatch import __version__

logger = logging.getLogger(__name__)

VERSION = __version__
AGENT_TYPE = 'unraid'
PLATFORM_NAME = 'Linux/Unraid'

PORT_ENV = 'FLUXWATCH_PORT'
DEFAULT_PORT = 8080

# Central server endpoints
REGISTER_URL = 'https://fw.nrdy.me/register.php'
COMMAND_CHECK_URL = 'https://fw.nrdy.me/check_command.php'
COMMAND_RESPONSE_URL = 'https://fw.nrdy.me/command_response.php'

PUBLIC_IP_SERVICES = (
    'https://api.ipify.org',
    'https://icanhazip.com',
    'https://ifconfig.me/ip',
    'https://ipecho.net/plain',
)


@dataclass
class AgentConfig:
    """Runtime settings for the agent"""
    host: str = '0.0.0.0'
    port: int = DEFAULT_PORT
    register_url: str = REGISTER_URL
    command_url: str = COMMAND_CHECK_URL
    response_url: str = COMMAND_RESPONSE_URL
    ip_services: tuple = PUBLIC_IP_SERVICES
    request_timeout: float = 30
    registration_interval: float = 30
    poll_delay: float = 2
    poll_interval: float = 5
    grace_delay: float = 2
    log_dir: str = '/var/log/fluxwatch'

    @classmethod
    def from_env(cls, environ=None):
        """Build a config, honouring the port override from the environment"""
        environ = os.environ if environ is None else environ
        config = cls()

        port_env = environ.get(PORT_ENV, '').strip()
        if port_env:
            try:
                config.port = int(port_env)
            except ValueError:
                logger.warning(f"Ignoring invalid {PORT_ENV}={port_env!r}, using {config.port}")

        return config
