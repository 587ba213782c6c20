"""Tests for opencode binary discovery and version parsing."""

import subprocess

import pytest

from opencode_proxy_sync import detect


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("opencode/1.2.3", "1.2.3"),
        ("codex-cli 0.86.0", "0.86.0"),
        ("v2.0.1", "2.0.1"),
        ("0.15.8\n", "0.15.8"),
        ("no version here", "unknown"),
        ("", "unknown"),
    ],
)
def test_extract_version(raw, expected):
    assert detect.extract_version(raw) == expected


def test_not_on_path(monkeypatch):
    monkeypatch.setattr(detect.shutil, "which", lambda name: None)
    assert detect.check_opencode_installed() == (False, None)


def test_version_from_stdout(monkeypatch):
    monkeypatch.setattr(detect.shutil, "which", lambda name: "/usr/bin/opencode")
    monkeypatch.setattr(detect.platform, "system", lambda: "Linux")
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(cmd, 0, stdout="opencode/0.15.0\n", stderr="")

    monkeypatch.setattr(detect.subprocess, "run", fake_run)
    assert detect.check_opencode_installed() == (True, "0.15.0")
    assert calls[0][0] == ["/usr/bin/opencode", "--version"]
    assert calls[0][1]["timeout"] == detect.VERSION_TIMEOUT_S


def test_version_from_stderr(monkeypatch):
    monkeypatch.setattr(detect.shutil, "which", lambda name: "/usr/bin/opencode")
    monkeypatch.setattr(
        detect.subprocess,
        "run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 0, stdout="", stderr="1.0.2"),
    )
    assert detect.check_opencode_installed() == (True, "1.0.2")


def test_failed_probe_is_not_installed(monkeypatch):
    monkeypatch.setattr(detect.shutil, "which", lambda name: "/usr/bin/opencode")

    def timeout(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout"))

    monkeypatch.setattr(detect.subprocess, "run", timeout)
    assert detect.check_opencode_installed() == (False, None)

    monkeypatch.setattr(
        detect.subprocess,
        "run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 1, stdout="", stderr="boom"),
    )
    assert detect.check_opencode_installed() == (False, None)


def test_windows_cmd_shim(monkeypatch):
    monkeypatch.setattr(detect.platform, "system", lambda: "Windows")
    found = {"opencode.cmd": r"C:\npm\opencode.cmd"}
    monkeypatch.setattr(detect.shutil, "which", lambda name: found.get(name))
    path = detect.resolve_opencode_path()
    assert path == r"C:\npm\opencode.cmd"
    assert detect._version_command(path) == ["cmd.exe", "/C", path, "--version"]
