import pytest

from config import MEMBERS_TABLE
from db import LocalBackend


@pytest.fixture
def client(tmp_path):
    backend = LocalBackend(db_file=tmp_path / "native.db", storage_dir=tmp_path / "storage")
    backend.init()
    return backend


@pytest.fixture
def member_form():
    return {
        "fname": "Jane",
        "lname": "Doe",
        "email": "jane@example.com",
        "phone": "57001234",
        "nic": "J0101901234567",
        "amount": "500",
    }


@pytest.fixture
def add_member(client):
    def _add(fname="Jane", lname="Doe", amount=500.0, **extra):
        row = {
            "fname": fname,
            "lname": lname,
            "email": extra.pop("email", f"{fname.lower()}@example.com"),
            "phone": extra.pop("phone", "57000000"),
            "nic": extra.pop("nic", f"NIC-{fname}"),
            "amount": amount,
        }
        row.update(extra)
        return client.insert(MEMBERS_TABLE, row)

    return _add
