"""
Command line entry point
"""
import sys
import logging
import argparse

from fluxwatch.agent import Agent
from fluxwatch.config import AgentConfig, PORT_ENV, DEFAULT_PORT, VERSION
from fluxwatch.logging_config import configure_logging
from fluxwatch.server import AgentStartupError

logger = logging.getLogger(__name__)

EPILOG = f"""\
Environment Variables:
  {PORT_ENV}   HTTP server port (default: {DEFAULT_PORT})

Endpoints:
  /                Health check
  /health          Health status JSON
  /info            Device information
  /api/info        Full device info JSON
  /api/status      Quick status check
  /api/metrics     CPU, RAM, disk and load
"""


def build_parser():
    parser = argparse.ArgumentParser(
        prog='fluxwatch',
        description=f"FluxWatch v{VERSION} - Device Monitoring Agent",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '-v', '--version', action='version', version=f"FluxWatch v{VERSION}",
        help='Show version information'
    )
    return parser


def main(argv=None):
    build_parser().parse_args(argv)

    config = AgentConfig.from_env()
    configure_logging(config.log_dir)

    try:
        agent = Agent(config)
        agent.run()
    except AgentStartupError as e:
        logger.error(f"FATAL: {e}")
        print(f"FATAL ERROR: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
