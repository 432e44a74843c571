"""
Data models exchanged between the agent components and the central server
"""
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from fluxwatch.config import AGENT_TYPE, PLATFORM_NAME, VERSION

RESULT_COMPLETED = 'completed'
RESULT_UNKNOWN = 'unknown'


@dataclass(frozen=True)
class DeviceIdentity:
    """Identity of this host, computed once per process"""
    device_id: str
    hostname: str


@dataclass(frozen=True)
class MetricsSnapshot:
    """
    Point-in-time host facts

    Every field carries its fallback value as default, so a snapshot built
    from a partial set of readings is still complete.
    """
    os: str = 'Unknown'
    hostname: str = 'Unknown'
    ip_address: str = '127.0.0.1'
    all_ips: tuple = ()
    mac_address: str = 'Unknown'
    cpu: float = 0
    cpu_model: str = 'Unknown'
    cpu_cores: int = 0
    ram_used: float = 0
    ram_total: float = 0
    ram_percent: float = 0
    disk_used: float = 0
    disk_total: float = 0
    disk_percent: float = 0
    uptime: str = 'Unknown'
    load_average: str = '0.00 0.00 0.00'
    process_count: int = 0
    unraid_version: str = 'N/A'
    docker_containers: int = 0
    array_status: str = 'Unknown'
    online: bool = True
    timestamp: str = field(default_factory=lambda: datetime.now().astimezone().isoformat())
    platform: str = PLATFORM_NAME
    error: Optional[str] = None

    def to_dict(self):
        data = {
            'os': self.os,
            'hostname': self.hostname,
            'ipAddress': self.ip_address,
            'allIPs': list(self.all_ips),
            'macAddress': self.mac_address,
            'cpu': self.cpu,
            'cpuModel': self.cpu_model,
            'cpuCores': self.cpu_cores,
            'ramUsed': self.ram_used,
            'ramTotal': self.ram_total,
            'ramPercent': self.ram_percent,
            'diskUsed': self.disk_used,
            'diskTotal': self.disk_total,
            'diskPercent': self.disk_percent,
            'uptime': self.uptime,
            'loadAverage': self.load_average,
            'processCount': self.process_count,
            'unraidVersion': self.unraid_version,
            'dockerContainers': self.docker_containers,
            'arrayStatus': self.array_status,
            'online': self.online,
            'timestamp': self.timestamp,
            'platform': self.platform,
        }
        if self.error is not None:
            data['error'] = self.error
        return data


@dataclass(frozen=True)
class RegistrationPayload:
    """Body posted to the registration endpoint on every beacon tick"""
    device_id: str
    hostname: str
    public_ip: str
    local_ip: str
    info: MetricsSnapshot
    last_seen: int = field(default_factory=lambda: int(time.time()))
    version: str = VERSION
    agent_type: str = AGENT_TYPE

    @classmethod
    def build(cls, identity, snapshot, public_ip):
        return cls(
            device_id=identity.device_id,
            hostname=identity.hostname,
            public_ip=public_ip,
            local_ip=snapshot.ip_address,
            info=snapshot,
        )

    @property
    def platform(self):
        return self.info.os or PLATFORM_NAME

    def to_dict(self):
        return {
            'deviceId': self.device_id,
            'hostname': self.hostname,
            'publicIP': self.public_ip,
            'localIP': self.local_ip,
            'lastSeen': self.last_seen,
            'lastSeenFormatted': datetime.fromtimestamp(self.last_seen).strftime('%Y-%m-%d %H:%M:%S'),
            'version': self.version,
            'platform': self.platform,
            'agentType': self.agent_type,
            'info': self.info.to_dict(),
        }


@dataclass(frozen=True)
class Command:
    """Command received from the central server"""
    command_id: str
    action: str

    @classmethod
    def from_dict(cls, data):
        """Decode a command object; missing keys decode to empty strings"""
        if not isinstance(data, dict):
            raise ValueError(f"Command must be a JSON object, got {type(data).__name__}")
        command_id = data.get('commandId')
        action = data.get('action')
        return cls(
            command_id='' if command_id is None else str(command_id),
            action='' if action is None else str(action),
        )


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a processed command, reported back exactly once"""
    command_id: str
    device_id: str
    result: str
    message: str
    timestamp: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self):
        return {
            'commandId': self.command_id,
            'deviceId': self.device_id,
            'result': self.result,
            'message': self.message,
            'timestamp': self.timestamp,
        }
