"""Host hardware profiling.

Memory counters come from the operating system (``/proc/meminfo`` on Linux,
``sysctl``/``vm_stat`` on macOS). Thermal and power classes are inferred from
core count and RAM with a fixed decision table: there is no sensor read, so
both are heuristics and the profile notes say so.
"""

import logging
import os
import platform
import re
import socket
import subprocess
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

PROBE_TIMEOUT_SEC = 5

# Thermal class decision table: (max cores, max total RAM MB, class)
THERMAL_TABLE = (
    (2, 4096, "mobile"),
    (4, 8192, "laptop"),
    (8, 16384, "desktop"),
)
THERMAL_FALLBACK = "server"

BATTERY_CLASSES = ("mobile", "laptop")

HEURISTIC_NOTE = "thermal/power profile inferred from cores and RAM (no sensor read)"


@dataclass(frozen=True)
class HardwareProfile:
    """Capabilities of the host the benchmark runs on."""

    device_name: str
    os: str
    architecture: str
    cpu_cores: int
    total_ram_mb: int
    available_ram_mb: int
    storage_type: str
    thermal_profile: str
    power_profile: str
    notes: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "HardwareProfile":
        return cls(
            device_name=data.get("device_name", UNKNOWN),
            os=data.get("os", UNKNOWN),
            architecture=data.get("architecture", UNKNOWN),
            cpu_cores=int(data.get("cpu_cores", 0)),
            total_ram_mb=int(data.get("total_ram_mb", 0)),
            available_ram_mb=int(data.get("available_ram_mb", 0)),
            storage_type=data.get("storage_type", UNKNOWN),
            thermal_profile=data.get("thermal_profile", UNKNOWN),
            power_profile=data.get("power_profile", UNKNOWN),
            notes=data.get("notes", ""),
        )


# =============================================================================
# Probes
# =============================================================================

def _command_output(args: list[str]) -> Optional[str]:
    """Run a short probe command, returning stdout or None on any failure."""
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=PROBE_TIMEOUT_SEC,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("Probe %s failed: %s", args[0], e)
        return None
    if result.returncode != 0:
        logger.debug("Probe %s exited with %d", args[0], result.returncode)
        return None
    return result.stdout


def read_meminfo(path: str = "/proc/meminfo") -> dict[str, int]:
    """Parse /proc/meminfo into a mapping of field name to kB."""
    fields = {}
    try:
        with open(path) as f:
            for line in f:
                name, _, rest = line.partition(":")
                parts = rest.split()
                if parts and parts[0].isdigit():
                    fields[name.strip()] = int(parts[0])
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
    return fields


def _darwin_available_mb() -> int:
    """Available RAM on macOS from vm_stat (free + inactive + purgeable pages)."""
    output = _command_output(["vm_stat"])
    if output is None:
        return 0

    page_size = 16384
    pages = {"Pages free": 0, "Pages inactive": 0, "Pages purgeable": 0}
    for line in output.split("\n"):
        if "page size of" in line:
            match = re.search(r"(\d+) bytes", line)
            if match:
                page_size = int(match.group(1))
            continue
        name, _, value = line.partition(":")
        if name.strip() in pages:
            try:
                pages[name.strip()] = int(value.strip().rstrip("."))
            except ValueError:
                pass

    return sum(pages.values()) * page_size // (1024 * 1024)


def get_total_memory_mb() -> int:
    """Total system RAM in MB, 0 when it cannot be determined."""
    system = platform.system()
    if system == "Linux":
        return read_meminfo().get("MemTotal", 0) // 1024
    if system == "Darwin":
        output = _command_output(["sysctl", "-n", "hw.memsize"])
        if output and output.strip().isdigit():
            return int(output.strip()) // (1024 * 1024)
    return 0


def get_available_memory_mb() -> int:
    """Available RAM in MB.

    Prefers the kernel's "available" estimate over "free", since page cache
    that can be reclaimed is not free but is available to a new process.
    """
    system = platform.system()
    if system == "Linux":
        meminfo = read_meminfo()
        if "MemAvailable" in meminfo:
            return meminfo["MemAvailable"] // 1024
        return (meminfo.get("MemFree", 0) + meminfo.get("Cached", 0)) // 1024
    if system == "Darwin":
        return _darwin_available_mb()
    return 0


def get_storage_type(sys_block: str = "/sys/block") -> str:
    """SSD if any physical disk is non-rotational, HDD if all rotate, else unknown."""
    system = platform.system()
    if system == "Darwin":
        return "SSD"
    if system != "Linux":
        return UNKNOWN

    flags = []
    block_dir = Path(sys_block)
    if block_dir.is_dir():
        for device in sorted(block_dir.iterdir()):
            if device.name.startswith(("loop", "ram", "zram", "dm-")):
                continue
            rotational = device / "queue" / "rotational"
            try:
                flags.append(rotational.read_text().strip())
            except OSError:
                continue

    if not flags:
        output = _command_output(["lsblk", "-d", "-n", "-o", "name,rota"])
        if output:
            for line in output.strip().split("\n"):
                parts = line.split()
                if len(parts) == 2 and not parts[0].startswith(("loop", "ram", "zram")):
                    flags.append(parts[1])

    if not flags:
        return UNKNOWN
    return "SSD" if "0" in flags else "HDD"


# =============================================================================
# Inference
# =============================================================================

def infer_thermal_profile(cpu_cores: int, total_ram_mb: int) -> str:
    """Classify the host as mobile, laptop, desktop or server."""
    for max_cores, max_ram, thermal in THERMAL_TABLE:
        if cpu_cores <= max_cores and total_ram_mb <= max_ram:
            return thermal
    return THERMAL_FALLBACK


def infer_power_profile(thermal_profile: str) -> str:
    """Assume battery power for mobile/laptop classes, mains otherwise."""
    return "battery" if thermal_profile in BATTERY_CLASSES else "plugged"


def profile_hardware() -> HardwareProfile:
    """Capture the host profile.

    Never raises. Anything the environment cannot report is filled with an
    "unknown" sentinel (or 0) so benchmarking can still proceed with degraded
    confidence; what was missing is listed in the profile notes.
    """
    notes = [HEURISTIC_NOTE]

    try:
        device_name = socket.gethostname() or UNKNOWN
    except OSError:
        device_name = UNKNOWN
    if device_name == UNKNOWN:
        notes.append("hostname unavailable")

    cpu_cores = os.cpu_count() or 0
    if not cpu_cores:
        notes.append("core count unavailable")

    total_ram_mb = get_total_memory_mb()
    available_ram_mb = get_available_memory_mb()
    if not total_ram_mb:
        notes.append("memory counters unavailable")

    thermal = infer_thermal_profile(cpu_cores, total_ram_mb)

    profile = HardwareProfile(
        device_name=device_name,
        os=platform.system().lower() or UNKNOWN,
        architecture=platform.machine() or UNKNOWN,
        cpu_cores=cpu_cores,
        total_ram_mb=total_ram_mb,
        available_ram_mb=available_ram_mb,
        storage_type=get_storage_type(),
        thermal_profile=thermal,
        power_profile=infer_power_profile(thermal),
        notes="; ".join(notes),
    )
    logger.debug("Hardware profile: %s", profile)
    return profile
