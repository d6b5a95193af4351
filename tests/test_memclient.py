import io

import pytest

from fnops.client import AlreadyExistsError, NotFoundError, Unstructured
from fnops.memclient import MapClient, from_string, load, new_sample
from fnops.operator import ApplyOptions, WatchEvent
from fnops.operators import GenericOperator

API_VERSION = "test.me.plz/v1alpha1"

SAMPLE_DATA = """apiVersion: test.me.plz/v1alpha1
kind: Sample
metadata:
  name: test
  namespace: test-ns"""


def make_client(data=None):
    return MapClient(
        data=list(data or []),
        namespace="test-ns",
        api_version=API_VERSION,
        kind="Sample",
        group="test.me.pl",
        resource="samples",
    )


def test_new_sample_fields():
    sample = new_sample("test", "test-ns")
    assert sample.name == "test"
    assert sample.namespace == "test-ns"
    assert sample.kind == "Sample"
    assert sample.api_version == API_VERSION


def test_from_string_reads_sample():
    items = from_string(SAMPLE_DATA)
    assert items == [new_sample("test", "test-ns")]


def test_load_multiple_documents_skips_empty():
    text = SAMPLE_DATA + "\n---\n---\n" + SAMPLE_DATA.replace("name: test", "name: other")
    items = load(io.StringIO(text))
    assert [item.name for item in items] == ["test", "other"]


def test_load_rejects_non_mapping():
    with pytest.raises(TypeError):
        from_string("- a\n- b\n")


def test_create_then_get_round_trip():
    client = make_client()
    created = client.create(new_sample("test", "test-ns"))
    assert created.uid
    fetched = client.get("test")
    assert fetched == created
    assert len(client.data) == 1


def test_create_assigns_distinct_uids():
    client = make_client()
    first = client.create(new_sample("a", "test-ns"))
    second = client.create(new_sample("b", "test-ns"))
    assert first.uid != second.uid


def test_create_duplicate_raises():
    client = make_client()
    client.create(new_sample("test", "test-ns"))
    with pytest.raises(AlreadyExistsError):
        client.create(new_sample("test", "test-ns"))


def test_create_dry_run_does_not_store():
    client = make_client()
    client.create(new_sample("test", "test-ns"), dry_run=["All"])
    assert client.data == []


def test_get_missing_raises():
    with pytest.raises(NotFoundError):
        make_client().get("test")


def test_list_filters_scope():
    client = make_client(from_string(SAMPLE_DATA))
    client.data.append(new_sample("elsewhere", "other-ns"))
    assert [item.name for item in client.list()] == ["test"]


def test_out_of_scope_object_is_not_found():
    client = make_client([new_sample("test", "other-ns")])
    with pytest.raises(NotFoundError):
        client.get("test")


def test_delete_removes_object():
    client = make_client(from_string(SAMPLE_DATA))
    client.delete("test")
    assert client.data == []


def test_delete_missing_raises():
    with pytest.raises(NotFoundError):
        make_client().delete("test")


def test_delete_collection_keeps_out_of_scope():
    client = make_client([new_sample("a", "test-ns"), new_sample("b", "other-ns")])
    client.delete_collection()
    assert [item.name for item in client.data] == ["b"]


def test_update_replaces_and_keeps_uid():
    client = make_client()
    created = client.create(new_sample("test", "test-ns"))
    changed = new_sample("test", "test-ns")
    changed.object["spec"] = {"test": "me"}
    updated = client.update(changed)
    assert updated.uid == created.uid
    assert client.get("test").object["spec"] == {"test": "me"}


def test_update_missing_raises():
    with pytest.raises(NotFoundError):
        make_client().update(new_sample("test", "test-ns"))


def test_update_status_sets_status():
    client = make_client(from_string(SAMPLE_DATA))
    obj = new_sample("test", "test-ns")
    obj.object["status"] = {"phase": "ready"}
    client.update_status(obj)
    assert client.get("test").object["status"] == {"phase": "ready"}


def test_update_status_rejects_non_mapping_status():
    client = make_client(from_string(SAMPLE_DATA))
    obj = new_sample("test", "test-ns")
    obj.object["status"] = "ready"
    with pytest.raises(TypeError):
        client.update_status(obj)


def test_watch_reports_matching_object_added():
    client = make_client(from_string(SAMPLE_DATA))
    events = list(
        client.watch(
            kind="Sample",
            api_version=API_VERSION,
            field_selector="metadata.name=test,metadata.namespace=test-ns",
        )
    )
    assert [event.type for event in events] == [WatchEvent.ADDED]
    assert events[0].object.name == "test"


def test_watch_ignores_other_names():
    client = make_client(from_string(SAMPLE_DATA))
    events = list(client.watch(field_selector="metadata.name=missing"))
    assert events == []


def test_generic_operator_apply_with_wait():
    client = make_client()
    operator = GenericOperator(client, new_sample("test", "test-ns"))
    operator.apply(ApplyOptions(wait_for_apply=True))
    assert [item.name for item in client.list()] == ["test"]
    assert operator.items[0].uid == client.get("test").uid


def test_returned_objects_are_copies():
    client = make_client(from_string(SAMPLE_DATA))
    fetched = client.get("test")
    fetched.name = "renamed"
    assert client.get("test").name == "test"
    assert isinstance(fetched, Unstructured)