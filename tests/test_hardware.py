import pytest

from lowspec_bench import hardware
from lowspec_bench.hardware import (
    HardwareProfile,
    get_storage_type,
    infer_power_profile,
    infer_thermal_profile,
    profile_hardware,
    read_meminfo,
)


def test_read_meminfo(tmp_path):
    meminfo = tmp_path / "meminfo"
    meminfo.write_text(
        "MemTotal:       16318576 kB\n"
        "MemFree:         1033216 kB\n"
        "MemAvailable:    9284044 kB\n"
        "HugePages_Total:       0\n"
    )
    fields = read_meminfo(str(meminfo))
    assert fields["MemTotal"] == 16318576
    assert fields["MemAvailable"] == 9284044
    assert fields["HugePages_Total"] == 0


def test_read_meminfo_missing_file(tmp_path):
    assert read_meminfo(str(tmp_path / "nope")) == {}


def test_available_memory_falls_back_to_free_plus_cached(monkeypatch):
    monkeypatch.setattr(hardware.platform, "system", lambda: "Linux")
    monkeypatch.setattr(hardware, "read_meminfo", lambda: {"MemFree": 1024 * 1024, "Cached": 512 * 1024})
    assert hardware.get_available_memory_mb() == 1536


@pytest.mark.parametrize("cores,ram,expected", [
    (2, 4096, "mobile"),
    (2, 2048, "mobile"),
    (4, 8192, "laptop"),
    (2, 8192, "laptop"),
    (8, 16384, "desktop"),
    (4, 16000, "desktop"),
    (16, 65536, "server"),
    (8, 32768, "server"),
])
def test_thermal_decision_table(cores, ram, expected):
    assert infer_thermal_profile(cores, ram) == expected


def test_power_profile_follows_thermal_class():
    assert infer_power_profile("mobile") == "battery"
    assert infer_power_profile("laptop") == "battery"
    assert infer_power_profile("desktop") == "plugged"
    assert infer_power_profile("server") == "plugged"


def _block_device(root, name, rotational):
    queue = root / name / "queue"
    queue.mkdir(parents=True)
    (queue / "rotational").write_text(f"{rotational}\n")


def test_storage_type_detects_ssd(tmp_path, monkeypatch):
    monkeypatch.setattr(hardware.platform, "system", lambda: "Linux")
    _block_device(tmp_path, "sda", 1)
    _block_device(tmp_path, "nvme0n1", 0)
    assert get_storage_type(str(tmp_path)) == "SSD"


def test_storage_type_detects_hdd_and_skips_loop_devices(tmp_path, monkeypatch):
    monkeypatch.setattr(hardware.platform, "system", lambda: "Linux")
    _block_device(tmp_path, "sda", 1)
    _block_device(tmp_path, "loop0", 0)
    assert get_storage_type(str(tmp_path)) == "HDD"


def test_storage_type_unknown_without_evidence(tmp_path, monkeypatch):
    monkeypatch.setattr(hardware.platform, "system", lambda: "Linux")
    monkeypatch.setattr(hardware, "_command_output", lambda args: None)
    assert get_storage_type(str(tmp_path / "missing")) == "unknown"


def test_profile_hardware_degrades_instead_of_raising(monkeypatch):
    """Every probe failing still yields a usable profile."""
    monkeypatch.setattr(hardware.socket, "gethostname", lambda: "")
    monkeypatch.setattr(hardware.os, "cpu_count", lambda: None)
    monkeypatch.setattr(hardware, "get_total_memory_mb", lambda: 0)
    monkeypatch.setattr(hardware, "get_available_memory_mb", lambda: 0)
    monkeypatch.setattr(hardware, "get_storage_type", lambda: "unknown")

    profile = profile_hardware()

    assert profile.device_name == "unknown"
    assert profile.cpu_cores == 0
    assert profile.total_ram_mb == 0
    assert profile.thermal_profile == "mobile"
    assert "memory counters unavailable" in profile.notes
    assert hardware.HEURISTIC_NOTE in profile.notes


def test_profile_round_trips_through_dict(laptop_profile):
    assert HardwareProfile.from_dict(laptop_profile.to_dict()) == laptop_profile
