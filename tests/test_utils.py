import pytest

import utils
from config import MEMBERS_TABLE, TICKETS_TABLE, TRANSACTIONS_TABLE
from errors import BackendError


def test_paginate_fixed_pages():
    rows = list(range(23))
    assert utils.total_pages(len(rows), 10) == 3
    assert utils.paginate(rows, 1, 10) == list(range(10))
    assert utils.paginate(rows, 3, 10) == [20, 21, 22]


def test_paginate_clamps_out_of_range_pages():
    rows = list(range(5))
    assert utils.paginate(rows, 9, 2) == [4]
    assert utils.paginate(rows, 0, 2) == [0, 1]
    assert utils.total_pages(0, 10) == 1
    assert utils.paginate([], 1, 10) == []


def test_format_helpers():
    assert utils.format_money(1234.5) == "Rs 1,234.50"
    assert utils.format_timestamp("2026-05-04T03:02:01.123+00:00") == "2026-05-04 03:02:01"
    assert utils.format_timestamp("not a date") == "not a date"
    assert utils.format_timestamp(None) == ""


def test_insert_sample_data(client):
    utils.insert_sample_data(client)
    assert len(client.select(MEMBERS_TABLE)) == 3
    assert len(client.select(TRANSACTIONS_TABLE)) == 3
    assert len(client.select(TICKETS_TABLE)) == 2


def test_local_backend_or_filter_and_update(client, add_member):
    jane = add_member(fname="Jane", phone="57001111")
    add_member(fname="John", phone="57002222")

    rows = client.select(MEMBERS_TABLE, "id,phone", or_eq={"email": "nobody@x.io", "phone": "57001111"})
    assert [r["id"] for r in rows] == [jane["id"]]

    updated = client.update(MEMBERS_TABLE, {"amount": 1.5}, eq={"id": jane["id"]})
    assert updated[0]["amount"] == 1.5
    assert client.update(MEMBERS_TABLE, {"amount": 2}, eq={"id": "missing"}) == []


def test_local_backend_errors(client):
    with pytest.raises(BackendError):
        client.select("no_such_table")
    with pytest.raises(BackendError):
        client.select_one(MEMBERS_TABLE, "*", eq={"id": "missing"})
    with pytest.raises(BackendError):
        client.delete(MEMBERS_TABLE, eq={})
    with pytest.raises(BackendError):
        client.upload("../escape.png", b"x")
