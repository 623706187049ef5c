"""
Tests for the DryRunManager
"""

# Standard
from unittest import mock

# Third Party
import pytest

# Local
from istiocsr_operator.client import DryRunClient
from istiocsr_operator.exceptions import ConfigError
from istiocsr_operator.manager import DryRunManager
from istiocsr_operator.reconcile import ReconcileRequest, ReconciliationResult
from istiocsr_operator.test_helpers.helpers import configure_logging
from istiocsr_operator.watch import EnableFilter, RequestMapper, WatchSpec

configure_logging()

## Helpers #####################################################################


class RecordingController:
    """Controller that records every request and optionally writes a status"""

    def __init__(self, name="recorder", client=None):
        self.name = name
        self.client = client
        self.requests = []
        self.request_mapper = RequestMapper(
            [
                WatchSpec(
                    "v1",
                    "ConfigMap",
                    (EnableFilter,),
                    lambda obj: [ReconcileRequest(obj.name, obj.namespace)],
                )
            ]
        )

    def setup_with_manager(self, manager):
        manager.add_controller(self)

    def safe_reconcile(self, request):
        self.requests.append(request)
        return ReconciliationResult(requeue=False)


def make_config_map(name="cm"):
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": "ns"},
        "data": {},
    }


## Tests #######################################################################


def test_existing_objects_replayed():
    """Make sure a new controller sees the objects that already exist"""
    client = DryRunClient([make_config_map("a"), make_config_map("b")])
    manager = DryRunManager(client)
    manager.start()
    controller = RecordingController()
    controller.setup_with_manager(manager)

    results = manager.process_events()
    assert sorted(request.name for request in controller.requests) == ["a", "b"]
    assert all(name == "recorder" for name, _, _ in results)


def test_replay_only_for_new_controller():
    """Make sure replayed events only go to the controller that was added"""
    client = DryRunClient([make_config_map()])
    manager = DryRunManager(client)
    manager.start()
    first = RecordingController("first")
    first.setup_with_manager(manager)
    manager.process_events()

    second = RecordingController("second")
    second.setup_with_manager(manager)
    manager.process_events()
    assert len(first.requests) == 1
    assert len(second.requests) == 1


def test_client_changes_dispatched():
    """Make sure writes through the client reach the controllers"""
    client = DryRunClient()
    manager = DryRunManager(client)
    controller = RecordingController()
    controller.setup_with_manager(manager)
    manager.start()

    client.create(make_config_map())
    manager.process_events()
    assert controller.requests == [ReconcileRequest("cm", "ns")]


def test_requests_deduplicated():
    """Make sure several events for one object cause one reconcile"""
    client = DryRunClient()
    manager = DryRunManager(client)
    controller = RecordingController()
    controller.setup_with_manager(manager)
    manager.start()

    created = client.create(make_config_map())
    created["data"] = {"a": "b"}
    client.update(created)
    manager.process_events()
    assert controller.requests == [ReconcileRequest("cm", "ns")]


def test_not_started():
    """Make sure events stay queued until the manager starts"""
    client = DryRunClient()
    manager = DryRunManager(client)
    controller = RecordingController()
    controller.setup_with_manager(manager)
    client.create(make_config_map())

    assert manager.process_events() == []
    manager.start()
    manager.process_events()
    assert len(controller.requests) == 1

    manager.stop()
    client.create(make_config_map("other"))
    assert manager.process_events() == []


def test_duplicate_controller():
    """Make sure controller names are unique"""
    manager = DryRunManager(DryRunClient())
    RecordingController().setup_with_manager(manager)
    with pytest.raises(ConfigError):
        RecordingController().setup_with_manager(manager)


def test_run_until_idle():
    """Make sure events produced while reconciling are processed too"""
    client = DryRunClient([make_config_map("seed")])
    manager = DryRunManager(client)
    controller = RecordingController()

    def reconcile(request):
        controller.requests.append(request)
        if request.name == "seed":
            client.create(make_config_map("child"))
        return ReconciliationResult(requeue=False)

    controller.safe_reconcile = reconcile
    controller.setup_with_manager(manager)
    manager.start()
    manager.run_until_idle()
    assert [request.name for request in controller.requests] == ["seed", "child"]


def test_run_until_idle_bounded():
    """Make sure a controller that keeps producing events does not loop
    forever
    """
    client = DryRunClient([make_config_map("seed")])
    manager = DryRunManager(client)
    controller = RecordingController()
    counter = iter(range(100))

    def reconcile(request):
        client.create(make_config_map(f"cm-{next(counter)}"))
        return ReconciliationResult(requeue=False)

    controller.safe_reconcile = mock.Mock(side_effect=reconcile)
    controller.setup_with_manager(manager)
    manager.start()
    with mock.patch("istiocsr_operator.manager.log") as log:
        manager.run_until_idle(max_rounds=3)
    assert controller.safe_reconcile.call_count == 3
    log.warning.assert_called_once()


def test_run_until_idle_drained_in_last_round():
    """Make sure no warning is logged when the last allowed round empties the
    queue
    """
    client = DryRunClient([make_config_map("seed")])
    manager = DryRunManager(client)
    controller = RecordingController()
    controller.setup_with_manager(manager)
    manager.start()
    with mock.patch("istiocsr_operator.manager.log") as log:
        manager.run_until_idle(max_rounds=1)
    assert [request.name for request in controller.requests] == ["seed"]
    log.warning.assert_not_called()
