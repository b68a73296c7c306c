from typing import Any, Dict, List, Optional

import pytest

from stackscript.drivers.registry import DriverRegistry
from stackscript.template.models import Action, Entity

TEST_AWS_ACCESS_KEY_ID = "test"
TEST_AWS_SECRET_ACCESS_KEY = "test"
TEST_AWS_REGION_NAME = "us-east-1"


@pytest.fixture(autouse=True)
def set_boto_test_credentials_and_region(monkeypatch):
    """
    Automatically sets the default credentials and region for all unit tests.
    """
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", TEST_AWS_ACCESS_KEY_ID)
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", TEST_AWS_SECRET_ACCESS_KEY)
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_AWS_REGION_NAME)
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


class FakeCloud:
    """
    In-memory stand-in for a platform, with a driver for every entity action. Creates return identifiers of the
    form ``<entity>-<n>``, dry runs return ``<entity>-dryrun``. All calls are recorded.
    """

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.failures: Dict[tuple, Exception] = {}
        self.results: Dict[tuple, Any] = {}

    def fail(self, action: str, entity: str, error: Exception):
        self.failures[(Action(action), Entity(entity))] = error

    def returns(self, action: str, entity: str, result: Any):
        self.results[(Action(action), Entity(entity))] = result

    def driver(self, entity: Entity, action: Action, dry_run: bool):
        def _driver(params: Dict[str, Any]) -> Optional[Any]:
            key = (action, entity)
            self.calls.append(
                {
                    "action": action.value,
                    "entity": entity.value,
                    "params": params,
                    "dry_run": dry_run,
                }
            )
            if key in self.failures:
                raise self.failures[key]
            if key in self.results:
                return self.results[key]
            if action != Action.CREATE:
                return None
            if dry_run:
                return f"{entity.value}-dryrun"
            created = [c for c in self.calls if c["action"] == "create" and not c["dry_run"]]
            return f"{entity.value}-{len(created)}"

        return _driver

    def registry(self) -> DriverRegistry:
        registry = DriverRegistry()
        for entity in Entity:
            for action in Action:
                for dry_run in (False, True):
                    registry.register(
                        entity, action, self.driver(entity, action, dry_run), dry_run=dry_run
                    )
        return registry

    def executed(self) -> List[str]:
        return [f"{c['action']} {c['entity']}" for c in self.calls]


@pytest.fixture
def fake_cloud() -> FakeCloud:
    return FakeCloud()


@pytest.fixture
def registry(fake_cloud) -> DriverRegistry:
    return fake_cloud.registry()
