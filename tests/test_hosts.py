import pytest

from cmdb_topology.errors import ValidationError
from cmdb_topology.params import ListHostsParameter, Page, parse_biz_id
from cmdb_topology.querybuilder import MAX_RULES, compile_filter

from conftest import BIZ_ID


def ids(result):
    assert result.ok, result.error
    return [row["bk_host_id"] for row in result.payload["info"]]


def test_list_biz_hosts_scopes_by_business(seeded_engine):
    result = seeded_engine.list_biz_hosts(BIZ_ID, {"page": {"limit": 10}})
    assert ids(result) == [1, 2]
    assert result.payload["count"] == 2


def test_list_biz_hosts_by_set_and_module(seeded_engine):
    assert ids(seeded_engine.list_biz_hosts(BIZ_ID, {"bk_set_ids": [20], "page": {"limit": 10}})) == [2]
    assert ids(seeded_engine.list_biz_hosts(BIZ_ID, {"bk_module_ids": [101], "page": {"limit": 10}})) == [1]
    assert ids(seeded_engine.list_biz_hosts(BIZ_ID, {"bk_set_ids": [], "page": {"limit": 10}})) == [1, 2]


def test_list_biz_hosts_with_set_condition(seeded_engine):
    payload = {
        "set_cond": [{"field": "bk_set_name", "operator": "$eq", "value": "SetA"}],
        "page": {"limit": 10},
    }
    assert ids(seeded_engine.list_biz_hosts(BIZ_ID, payload)) == [1]


def test_set_condition_matching_nothing_is_empty(seeded_engine):
    payload = {
        "set_cond": [{"field": "bk_set_name", "operator": "$eq", "value": "Elsewhere"}],
        "page": {"limit": 10},
    }
    result = seeded_engine.list_biz_hosts(BIZ_ID, payload)
    assert result.ok
    assert result.payload == {"count": 0, "info": []}


def test_set_ids_and_set_condition_are_exclusive(seeded_engine):
    payload = {
        "bk_set_ids": [10],
        "set_cond": [{"field": "bk_set_name", "value": "SetA"}],
        "page": {"limit": 10},
    }
    result = seeded_engine.list_biz_hosts(BIZ_ID, payload)
    assert result.is_client_error
    assert "can't both be set" in result.error


def test_property_filter(seeded_engine):
    payload = {
        "host_property_filter": {
            "condition": "OR",
            "rules": [
                {"field": "bk_os_type", "operator": "equal", "value": "2"},
                {"field": "bk_host_innerip", "operator": "begins_with", "value": "10.9."},
            ],
        },
        "page": {"limit": 10},
    }
    assert ids(seeded_engine.list_biz_hosts(BIZ_ID, payload)) == [2]
    assert ids(seeded_engine.list_hosts_without_biz(payload)) == [2, 5]


def test_unknown_filter_field_is_a_client_error(seeded_engine):
    payload = {
        "host_property_filter": {"field": "no_such_field", "operator": "equal", "value": 1},
        "page": {"limit": 10},
    }
    assert seeded_engine.list_hosts_without_biz(payload).is_client_error


def test_list_hosts_without_biz_sorts_and_pages(seeded_engine):
    result = seeded_engine.list_hosts_without_biz({"page": {"limit": 2, "sort": "-bk_host_id"}})
    assert ids(result) == [5, 2]
    assert result.payload["count"] == 3


def test_parameter_parsing_errors():
    with pytest.raises(ValidationError) as excinfo:
        ListHostsParameter.from_dict({"page": {"limit": 5}, "bk_set_ids": ["x"]}, 100)
    assert excinfo.value.key == "bk_set_ids"
    with pytest.raises(ValidationError) as excinfo:
        ListHostsParameter.from_dict({"page": {"limit": 500}}, 100)
    assert excinfo.value.key == "page.limit"
    with pytest.raises(ValidationError):
        ListHostsParameter.from_dict([], 100)
    with pytest.raises(ValidationError):
        ListHostsParameter.from_dict({"page": {"limit": 5}, "set_cond": [{"field": "x", "operator": "$regex"}]}, 100)


def test_page_is_illegal():
    assert Page(limit=0).is_illegal(10)
    assert Page(limit=11).is_illegal(10)
    assert Page(start=-1, limit=1).is_illegal(10)
    assert not Page(limit=10).is_illegal(10)


def test_parse_biz_id():
    assert parse_biz_id("3") == 3
    with pytest.raises(ValidationError):
        parse_biz_id(0)


def test_compile_filter():
    tree = {
        "condition": "AND",
        "rules": [
            {"field": "bk_host_name", "operator": "contains", "value": "50%_off"},
            {"field": "bk_cloud_id", "operator": "in", "value": [0, 1]},
            {"field": "operator", "operator": "exist"},
        ],
    }
    assert compile_filter(tree) == {
        "$and": [
            {"bk_host_name": {"$like": "%50\\%\\_off%"}},
            {"bk_cloud_id": {"$in": [0, 1]}},
            {"operator": {"$exists": True}},
        ]
    }


@pytest.mark.parametrize(
    "tree",
    [
        {"field": "a", "operator": "matches", "value": 1},
        {"field": "a", "operator": "in", "value": []},
        {"field": "a", "operator": "less", "value": "1"},
        {"field": "a", "operator": "contains", "value": ""},
        {"condition": "XOR", "rules": [{"field": "a", "operator": "exist"}]},
        {"condition": "AND", "rules": []},
        {"condition": "AND", "rules": [{"field": "a", "operator": "exist"}] * (MAX_RULES + 1)},
        {"condition": "AND", "rules": [{"condition": "OR", "rules": [
            {"condition": "AND", "rules": [{"condition": "OR", "rules": [{"field": "a", "operator": "exist"}]}]}
        ]}]},
    ],
)
def test_compile_filter_rejects(tree):
    with pytest.raises(ValidationError):
        compile_filter(tree)
