"""
Metrics Collector - Gathers point-in-time host facts

Each reader returns its value or None when the underlying source is missing
or unparsable. collect() composes the readers and falls back to the snapshot
defaults, so one failing source never hides the others.
"""
import os
import socket
import platform
import logging
import subprocess
from pathlib import Path

import psutil

from fluxwatch import network
from fluxwatch.models import MetricsSnapshot

logger = logging.getLogger(__name__)

GIB = 1024.0 ** 3
COMMAND_TIMEOUT = 10


def _to_gib(num_bytes):
    return round(num_bytes / GIB, 2)


def _percent(used, total):
    return round(used * 100.0 / total, 2) if total > 0 else 0


def format_uptime(seconds):
    """Render seconds as '{days}d {hours}h {minutes}m'"""
    seconds = int(seconds)
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    return f"{days}d {hours}h {minutes}m"


class MetricsCollector:
    """Collects host metrics from /proc, /etc and a couple of CLI tools"""

    def __init__(self, proc_root='/proc', etc_root='/etc', emhttp_root='/var/local/emhttp'):
        self.proc_root = Path(proc_root)
        self.etc_root = Path(etc_root)
        self.emhttp_root = Path(emhttp_root)

    # -- file helpers -------------------------------------------------

    def _read_text(self, path):
        try:
            return path.read_text(errors='replace')
        except OSError as e:
            logger.debug(f"Cannot read {path}: {e}")
            return None

    def _run(self, cmd):
        """Run an external command and return its stdout, or None"""
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors='replace',
                timeout=COMMAND_TIMEOUT
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"{cmd[0]} failed: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"{cmd[0]} exited with {result.returncode}: {result.stderr.strip()}")
            return None
        return result.stdout

    # -- readers ------------------------------------------------------

    def read_unraid_version(self):
        text = self._read_text(self.etc_root / 'unraid-version')
        if text is None:
            return None
        # The file is a shell assignment on real hosts: version="6.12.4"
        value = text.strip()
        if '=' in value:
            value = value.split('=', 1)[1]
        return value.strip('"') or None

    def read_os(self):
        unraid = self.read_unraid_version()
        if unraid:
            return f"Unraid {unraid}"

        text = self._read_text(self.etc_root / 'os-release')
        if text:
            for line in text.splitlines():
                if line.startswith('PRETTY_NAME='):
                    return line.split('=', 1)[1].strip().strip('"')

        return f"{platform.system()} {platform.release()}"

    def read_local_ip(self):
        return network.local_ipv4()

    def read_all_ips(self):
        return network.all_ipv4()

    def read_mac_address(self):
        return network.primary_mac_address()

    def read_cpu_cores(self):
        return psutil.cpu_count(logical=True)

    def read_cpu_usage(self):
        """1-minute load average relative to the core count, in percent"""
        text = self._read_text(self.proc_root / 'loadavg')
        cores = self.read_cpu_cores()
        if not text or not cores:
            return None
        try:
            load = float(text.split()[0])
        except (IndexError, ValueError):
            return None
        return round(load / cores * 100, 2)

    def read_cpu_model(self):
        text = self._read_text(self.proc_root / 'cpuinfo')
        if text is None:
            return None
        for line in text.splitlines():
            if line.startswith('model name'):
                return line.split(':', 1)[1].strip()
        return None

    def read_memory(self):
        """Returns (used GiB, total GiB, percent) from /proc/meminfo"""
        text = self._read_text(self.proc_root / 'meminfo')
        if text is None:
            return None

        total = available = None
        try:
            for line in text.splitlines():
                parts = line.split()
                if not parts:
                    continue
                if parts[0] == 'MemTotal:':
                    total = int(parts[1]) * 1024
                elif parts[0] == 'MemAvailable:':
                    available = int(parts[1]) * 1024
        except (IndexError, ValueError) as e:
            logger.debug(f"Unparsable meminfo: {e}")
            return None

        if total is None or available is None:
            return None

        used = total - available
        return _to_gib(used), _to_gib(total), _percent(used, total)

    def read_disk(self):
        """Returns (used GiB, total GiB, percent) of the root filesystem via df"""
        output = self._run(['df', '-B1', '/'])
        if output is None:
            return None

        lines = output.split('\n')
        if len(lines) < 2:
            return None
        parts = lines[1].split()
        if len(parts) < 4:
            return None

        try:
            total = int(parts[1])
            used = int(parts[2])
        except ValueError:
            return None

        return _to_gib(used), _to_gib(total), _percent(used, total)

    def read_uptime(self):
        text = self._read_text(self.proc_root / 'uptime')
        if not text:
            return None
        try:
            return format_uptime(float(text.split()[0]))
        except (IndexError, ValueError):
            return None

    def read_load_average(self):
        text = self._read_text(self.proc_root / 'loadavg')
        if not text:
            return None
        fields = text.split()
        if len(fields) < 3:
            return None
        return ' '.join(fields[:3])

    def read_process_count(self):
        try:
            with os.scandir(self.proc_root) as entries:
                return sum(1 for entry in entries if entry.name.isdigit() and entry.is_dir())
        except OSError as e:
            logger.debug(f"Cannot list {self.proc_root}: {e}")
            return None

    def read_docker_containers(self):
        output = self._run(['docker', 'ps', '-q'])
        if output is None:
            return None
        return len([line for line in output.split('\n') if line.strip()])

    def read_array_status(self):
        text = self._read_text(self.emhttp_root / 'var.ini')
        if text is None:
            return None
        for line in text.splitlines():
            if line.startswith('mdState='):
                return line.split('=', 1)[1].strip().strip('"') or None
        return None

    # -- composition --------------------------------------------------

    def collect(self):
        """Build a fresh MetricsSnapshot; never raises

        A reader that blows up only loses its own fields. The first such
        failure is recorded in the snapshot's error field.
        """
        fields = {}
        errors = []

        def put(names, reader):
            try:
                value = reader()
            except Exception as e:
                logger.exception(f"Collecting {names} failed")
                errors.append(str(e))
                return
            if value is None:
                return
            if isinstance(names, tuple):
                fields.update(zip(names, value))
            else:
                fields[names] = value

        put('os', self.read_os)
        put('hostname', socket.gethostname)
        put('ip_address', self.read_local_ip)
        put('all_ips', self.read_all_ips)
        put('mac_address', self.read_mac_address)
        put('cpu', self.read_cpu_usage)
        put('cpu_model', self.read_cpu_model)
        put('cpu_cores', self.read_cpu_cores)
        put(('ram_used', 'ram_total', 'ram_percent'), self.read_memory)
        put(('disk_used', 'disk_total', 'disk_percent'), self.read_disk)
        put('uptime', self.read_uptime)
        put('load_average', self.read_load_average)
        put('process_count', self.read_process_count)
        put('unraid_version', self.read_unraid_version)
        put('docker_containers', self.read_docker_containers)
        put('array_status', self.read_array_status)

        return MetricsSnapshot(error=errors[0] if errors else None, **fields)

    def local_ip(self):
        return self.read_local_ip() or network.FALLBACK_IP

    def uptime(self):
        return self.read_uptime() or 'Unknown'
