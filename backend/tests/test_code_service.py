"""Transaction code generation."""

from datetime import datetime

import pytest

from storepos.services.code_service import generate_code
from storepos.time_utils import to_store_local


def test_code_format():
    ts = datetime(2024, 3, 7, 9, 5, 42)
    assert generate_code("001", "R1", 42, ts) == "20240307-001-R1-0905-000042"


def test_same_inputs_same_code():
    ts = datetime(2024, 12, 31, 23, 59)
    assert generate_code("001", "R1", "7", ts) == generate_code("001", "R1", "7", ts)


def test_long_identifier_is_not_truncated():
    ts = datetime(2024, 1, 1, 0, 0)
    assert generate_code("001", "R1", 12345678, ts).endswith("-12345678")


@pytest.mark.parametrize("store_code, register_code, tx_id", [
    ("", "R1", 1),
    ("001", "", 1),
    ("001", "R1", None),
])
def test_missing_parts_rejected(store_code, register_code, tx_id):
    with pytest.raises(ValueError):
        generate_code(store_code, register_code, tx_id, datetime(2024, 1, 1))


def test_store_local_wall_clock():
    # 02:30 UTC is still the previous evening in New York
    local = to_store_local(datetime(2024, 7, 1, 2, 30), "America/New_York")
    assert generate_code("001", "R1", 1, local) == "20240630-001-R1-2230-000001"


def test_unknown_timezone_falls_back_to_utc():
    local = to_store_local(datetime(2024, 7, 1, 2, 30), "Not/AZone")
    assert (local.hour, local.minute) == (2, 30)
