"""
Tests for the RequestMapper
"""

# Standard
import threading

# Third Party
import pytest

# Local
from istiocsr_operator.managed_object import ManagedObject
from istiocsr_operator.reconcile import ReconcileRequest
from istiocsr_operator.watch import (
    EnableFilter,
    GenerationFilter,
    KubeEventType,
    KubeWatchEvent,
    RequestMapper,
    WatchSpec,
)

## Helpers #####################################################################


def to_self(resource):
    return [ReconcileRequest(resource.name, resource.namespace)]


def make_event(event_type, kind="Widget", name="w", generation=1):
    return KubeWatchEvent(
        type=event_type,
        resource=ManagedObject(
            {
                "apiVersion": "example.com/v1",
                "kind": kind,
                "metadata": {
                    "name": name,
                    "namespace": "ns",
                    "generation": generation,
                    "resourceVersion": str(generation),
                },
            }
        ),
    )


def make_mapper(filters=(GenerationFilter,), map_func=to_self):
    return RequestMapper(
        [
            WatchSpec(
                api_version="example.com/v1",
                kind="Widget",
                filters=filters,
                map_func=map_func,
            )
        ]
    )


## Tests #######################################################################


def test_map_watched_kind():
    """Make sure events of a watched kind are mapped"""
    mapper = make_mapper()
    assert mapper.map(make_event(KubeEventType.ADDED)) == [
        ReconcileRequest("w", "ns")
    ]


def test_map_unwatched_kind():
    """Make sure other kinds map to nothing"""
    mapper = make_mapper()
    assert mapper.map(make_event(KubeEventType.ADDED, kind="Gadget")) == []


def test_map_filter_state_per_object():
    """Make sure filter state is kept separately for every object"""
    mapper = make_mapper()
    assert mapper.map(make_event(KubeEventType.ADDED, name="a"))
    assert not mapper.map(make_event(KubeEventType.MODIFIED, name="a"))
    assert mapper.map(make_event(KubeEventType.ADDED, name="b"))
    assert mapper.map(make_event(KubeEventType.MODIFIED, name="a", generation=2))


def test_map_state_dropped_on_delete():
    """Make sure a recreated object starts with fresh filter state"""
    mapper = make_mapper()
    mapper.map(make_event(KubeEventType.ADDED))
    assert mapper.map(make_event(KubeEventType.DELETED))
    assert mapper.map(make_event(KubeEventType.MODIFIED))


def test_map_func_empty():
    """Make sure objects that are not of interest produce no request"""
    mapper = make_mapper(filters=(EnableFilter,), map_func=lambda _: [])
    assert mapper.map(make_event(KubeEventType.ADDED)) == []


def test_duplicate_watch():
    """Make sure a kind can only be watched once"""
    spec = WatchSpec("example.com/v1", "Widget", (EnableFilter,), to_self)
    with pytest.raises(AssertionError):
        RequestMapper([spec, spec])


def test_watched_kinds():
    """Make sure the watched kinds are listed"""
    assert make_mapper().watched_kinds() == [("example.com/v1", "Widget")]


def test_map_concurrent():
    """Make sure mapping from several threads keeps consistent state"""
    mapper = make_mapper(filters=(GenerationFilter,))
    mapper.map(make_event(KubeEventType.ADDED))
    results = []

    def worker(generation):
        results.append(
            bool(
                mapper.map(
                    make_event(KubeEventType.MODIFIED, generation=generation)
                )
            )
        )

    threads = [threading.Thread(target=worker, args=(2,)) for _ in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    # Only the first thread to see generation 2 passes
    assert results.count(True) == 1
