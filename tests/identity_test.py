from uuid import UUID

import pytest
from pydantic import ValidationError

from aggregate_root.abc import Identity
from aggregate_root.identity import Guid


class PlainIdentity(Identity):
    def __init__(self, value: str):
        self.value = value

    def to_string(self) -> str:
        return self.value


def test_guid_string_forms():
    guid = Guid("mock-guid")

    assert guid.to_string() == "mock-guid"
    assert str(guid) == "mock-guid"


def test_guid_value_equality():
    assert Guid("mock-guid") == Guid("mock-guid")
    assert Guid("mock-guid").equals(Guid("mock-guid"))
    assert Guid("mock-guid") != Guid("other-guid")


def test_identities_compare_by_string_form_across_implementations():
    assert Guid("mock-guid") == PlainIdentity("mock-guid")
    assert PlainIdentity("mock-guid").equals(Guid("mock-guid"))
    assert Guid("mock-guid") != "mock-guid"


def test_equal_identities_hash_alike():
    ids = {Guid("mock-guid"), Guid("mock-guid"), PlainIdentity("mock-guid")}
    assert len(ids) == 1


def test_guid_accepts_uuid():
    value = UUID("12345678-1234-5678-1234-567812345678")

    assert Guid(value).to_string() == "12345678-1234-5678-1234-567812345678"


def test_guid_rejects_empty_value():
    with pytest.raises(ValidationError):
        Guid("")


def test_guid_is_immutable():
    guid = Guid("mock-guid")
    with pytest.raises(ValidationError):
        guid.value = "other-guid"
