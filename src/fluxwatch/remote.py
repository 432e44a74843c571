"""
Remote Client - Talks to the central FluxWatch server
"""
import json
import logging

import requests

from fluxwatch.config import (
    REGISTER_URL,
    COMMAND_CHECK_URL,
    COMMAND_RESPONSE_URL,
    PUBLIC_IP_SERVICES,
)
from fluxwatch.models import Command, RegistrationPayload

logger = logging.getLogger(__name__)

EMPTY_BODIES = ('', 'null', '{}')


class RemoteClient:
    """
    Outbound calls to the central server

    Holds only endpoint configuration. Every call is independent and uses
    its own timeout, so any of them can simply be retried on the next tick.
    """

    def __init__(self, register_url=REGISTER_URL, command_url=COMMAND_CHECK_URL,
                 response_url=COMMAND_RESPONSE_URL, ip_services=PUBLIC_IP_SERVICES, timeout=30):
        self.register_url = register_url
        self.command_url = command_url
        self.response_url = response_url
        self.ip_services = tuple(ip_services)
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            register_url=config.register_url,
            command_url=config.command_url,
            response_url=config.response_url,
            ip_services=config.ip_services,
            timeout=config.request_timeout,
        )

    def resolve_public_ip(self) -> str:
        """Ask each IP echo service in turn; first plausible answer wins"""
        for service in self.ip_services:
            try:
                response = requests.get(service, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                logger.debug(f"Public IP lookup via {service} failed: {e}")
                continue

            ip = response.text.strip()
            if ip and '.' in ip:
                return ip
            logger.debug(f"Public IP lookup via {service} returned {ip!r}")

        return 'Unknown'

    def register_device(self, identity, snapshot) -> bool:
        """Post identity and metrics to the registration endpoint"""
        payload = RegistrationPayload.build(identity, snapshot, self.resolve_public_ip())

        try:
            response = requests.post(self.register_url, json=payload.to_dict(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug(f"Registration failed: {e}")
            return False

        if response.ok:
            logger.debug("Device registered successfully")
            return True

        logger.debug(f"Registration response: {response.status_code}")
        return False

    def poll_for_command(self, device_id):
        """
        Check the server for a pending command

        Returns:
            Command, or None when nothing is pending or the reply can't be decoded
        """
        try:
            response = requests.get(
                self.command_url,
                params={'deviceId': device_id},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.debug(f"Command check error: {e}")
            return None

        body = response.text.strip()
        if body in EMPTY_BODIES:
            return None

        logger.info(f"Received command: {body}")
        try:
            return Command.from_dict(json.loads(body))
        except ValueError as e:
            logger.error(f"Could not decode command {body!r}: {e}")
            return None

    def report_command_result(self, result) -> bool:
        """Send a command result back; failures are logged and dropped"""
        try:
            response = requests.post(self.response_url, json=result.to_dict(), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to report result for command {result.command_id}: {e}")
            return False

        logger.info(f"Command response sent: {result.result} - {result.message}")
        return True
