import pytest
from pymongo.errors import DuplicateKeyError

from foodlink.core.errors import ConflictError
from foodlink.repos.mongo import MongoCollection

pytestmark = pytest.mark.anyio


class DuplicateOnWrite:
    """Stands in for a Motor collection whose writes hit a unique index."""
    name = "assignments"

    async def _dup(self, *args, **kwargs):
        raise DuplicateKeyError("E11000 duplicate key", 11000, {"keyValue": {"donation_id": "d1"}})

    find_one_and_update = _dup
    update_many = _dup
    insert_one = _dup


@pytest.mark.parametrize("write", [
    lambda col: col.update("a1", {"status": "pending"}),
    lambda col: col.update_where({"donation_id": "d1"}, {"status": "pending"}),
    lambda col: col.update_many({"donation_id": "d1"}, {"status": "pending"}),
    lambda col: col.insert({"donation_id": "d1", "status": "pending"}),
])
async def test_unique_index_violations_become_conflicts(write):
    col = MongoCollection(DuplicateOnWrite())
    with pytest.raises(ConflictError, match="Duplicate assignment for donation_id"):
        await write(col)
