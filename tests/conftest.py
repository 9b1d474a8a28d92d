"""Test configuration and fixtures for dastbox."""

import asyncio
import json
import os
import tempfile
from collections.abc import Generator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from dastbox.config import RunSettings
from dastbox.errors import AlreadyExistsError, DeploymentError, NotFoundError
from dastbox.runtime import ContainerRuntime, NetworkMode, ServiceSpec


@dataclass
class FakeContainer:
    """In-memory stand-in for one container."""

    container_id: str
    spec: ServiceSpec
    status: str = "created"
    exit_code: int | None = None
    exited: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def is_scanner(self) -> bool:
        return self.spec.labels.get("dastbox.role") == "scanner"


class FakeRuntime(ContainerRuntime):
    """ContainerRuntime that records calls instead of talking to docker.

    Scanner containers write ``scanner_output`` into their mounted work
    directory when started and exit with ``scanner_exit_code`` unless
    ``scanner_hangs`` is set, in which case they run until stopped or killed.
    """

    name = "fake"

    def __init__(
        self,
        ready: bool = True,
        scanner_output: str | None = None,
        scanner_exit_code: int = 0,
        scanner_hangs: bool = False,
        scanner_logs: tuple[str, str] = ("", ""),
        fail_start: set[str] | None = None,
        fail_remove: set[str] | None = None,
        existing: set[str] | None = None,
    ):
        self.ready = ready
        self.scanner_output = scanner_output
        self.scanner_exit_code = scanner_exit_code
        self.scanner_hangs = scanner_hangs
        self.scanner_logs = scanner_logs
        self.fail_start = fail_start or set()
        self.fail_remove = fail_remove or set()
        self.existing = existing or set()
        self.containers: dict[str, FakeContainer] = {}
        self.networks: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.ready_urls: list[str] = []

    def by_name(self, name: str) -> FakeContainer | None:
        for container in self.containers.values():
            if container.spec.name == name:
                return container
        return None

    def running(self) -> list[FakeContainer]:
        return [c for c in self.containers.values() if c.status == "running"]

    def _get(self, container_id: str) -> FakeContainer:
        container = self.containers.get(container_id)
        if container is None:
            raise NotFoundError(container_id)
        return container

    async def create(self, spec: ServiceSpec) -> str:
        self.calls.append(("create", spec.name))
        if self.by_name(spec.name) is not None or spec.name in self.existing:
            raise AlreadyExistsError(spec.name)
        container_id = f"{spec.name}-id"
        self.containers[container_id] = FakeContainer(container_id=container_id, spec=spec)
        return container_id

    async def start(self, container_id: str) -> None:
        self.calls.append(("start", container_id))
        container = self._get(container_id)
        if container.spec.name in self.fail_start:
            raise DeploymentError(f"cannot start {container.spec.name}")
        container.status = "running"
        if not container.is_scanner:
            return
        if self.scanner_output is not None and container.spec.mounts:
            report = Path(container.spec.mounts[0].source) / "report.json"
            report.write_text(self.scanner_output, encoding="utf-8")
        if not self.scanner_hangs:
            self._exit(container, self.scanner_exit_code)

    def _exit(self, container: FakeContainer, code: int) -> None:
        if container.status == "running":
            container.status = "exited"
            container.exit_code = code
        container.exited.set()

    async def stop(self, container_id: str, grace: float = 10.0) -> None:
        self.calls.append(("stop", container_id))
        self._exit(self._get(container_id), 143)

    async def kill(self, container_id: str) -> None:
        self.calls.append(("kill", container_id))
        self._exit(self._get(container_id), 137)

    async def remove(self, container_id: str) -> None:
        self.calls.append(("remove", container_id))
        container = self._get(container_id)
        if container.spec.name in self.fail_remove:
            raise DeploymentError(f"cannot remove {container.spec.name}")
        self._exit(container, 137)
        del self.containers[container_id]

    async def wait_ready(self, container_id: str, url: str, interval: float, timeout: float) -> bool:
        self.calls.append(("wait_ready", container_id))
        self.ready_urls.append(url)
        return self.ready

    async def wait_exit(self, container_id: str) -> int:
        container = self._get(container_id)
        await container.exited.wait()
        return container.exit_code if container.exit_code is not None else 0

    async def logs(self, container_id: str) -> tuple[str, str]:
        self._get(container_id)
        return self.scanner_logs

    async def exists(self, name: str) -> bool:
        return self.by_name(name) is not None or name in self.existing

    async def create_network(self, name: str) -> None:
        self.calls.append(("create_network", name))
        if name in self.networks:
            raise AlreadyExistsError(name)
        self.networks.add(name)

    async def remove_network(self, name: str) -> None:
        self.calls.append(("remove_network", name))
        if name not in self.networks:
            raise NotFoundError(name)
        self.networks.remove(name)


def zap_alert(
    name: str,
    riskcode: str,
    uri: str,
    param: str = "",
    cweid: str = "-1",
    pluginid: str = "10000",
    count: str = "1",
) -> dict[str, Any]:
    """Build one alert in ZAP's traditional JSON layout."""
    return {
        "pluginid": pluginid,
        "alertRef": pluginid,
        "alert": name,
        "name": name,
        "riskcode": riskcode,
        "confidence": "2",
        "riskdesc": f"{['Informational', 'Low', 'Medium', 'High'][int(riskcode)]} (Medium)"
        if riskcode in {"0", "1", "2", "3"}
        else "False Positive",
        "desc": f"<p>{name} detected.</p>",
        "instances": [{"uri": uri, "method": "GET", "param": param, "attack": "", "evidence": ""}],
        "count": count,
        "solution": "<p>Fix it.</p>",
        "cweid": cweid,
        "wascid": "-1",
        "sourceid": "1",
    }


def zap_report(alerts: list[dict[str, Any]], site: str = "http://localhost:8080") -> str:
    return json.dumps(
        {
            "@version": "2.11.1",
            "@generated": "Mon, 19 Oct 2026 10:00:00",
            "site": [
                {
                    "@name": site,
                    "@host": "localhost",
                    "@port": "8080",
                    "@ssl": "false",
                    "alerts": alerts,
                }
            ],
        },
        indent=2,
    )


DVWA_ALERTS = [
    zap_alert(
        "Cross Site Scripting (Reflected)",
        "3",
        "http://localhost:8080/vulnerabilities/xss_r/?name=%3Cscript%3E",
        param="name",
        cweid="79",
        pluginid="40012",
    ),
    zap_alert(
        "SQL Injection",
        "3",
        "http://localhost:8080/vulnerabilities/sqli/?id=1",
        param="id",
        cweid="89",
        pluginid="40018",
    ),
    zap_alert(
        "Cookie No HttpOnly Flag",
        "1",
        "http://localhost:8080/login.php",
        param="PHPSESSID",
        cweid="1004",
        pluginid="10010",
        count="3",
    ),
    zap_alert(
        "Cleartext Transmission of Sensitive Information",
        "2",
        "http://localhost:8080/login.php",
        param="password",
        cweid="319",
        pluginid="10024",
    ),
]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path_factory) -> Path:
    """Keep the user's ~/.dastbox config and DASTBOX_* variables out of tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("DASTBOX_"):
            monkeypatch.delenv(key)
    return home


@pytest.fixture
def dvwa_report() -> str:
    """ZAP JSON report with the four DVWA findings."""
    return zap_report(DVWA_ALERTS)


@pytest.fixture
def fake_runtime(dvwa_report: str) -> FakeRuntime:
    return FakeRuntime(scanner_output=dvwa_report)


@pytest.fixture
def target_spec() -> ServiceSpec:
    return ServiceSpec(
        name="dvwa",
        image="vulnerables/web-dvwa",
        network_mode=NetworkMode.BRIDGE,
        container_port=80,
        host_port=8080,
    )


@pytest.fixture
def run_settings(temp_dir: Path) -> RunSettings:
    """Host-network settings for a run against port 8080."""
    return RunSettings(
        network_mode=NetworkMode.HOST,
        run_name="dvwa",
        container_port=8080,
        host_port=8080,
        readiness_interval=0.0,
        scan_timeout=5.0,
        kill_grace=0.0,
        report_path=temp_dir / "out" / "report.json",
    )
