import pytest

from tokenvm import storage
from tokenvm.errors import InvalidBalanceError, NotFoundError
from tokenvm.ids import EMPTY_ID

ID_A = b"\x0a" * 32
ID_B = b"\x0b" * 32
ID_C = b"\x0c" * 32
PK_1 = b"\x11" * 32
PK_2 = b"\x22" * 32


@pytest.fixture
def db():
    return storage.MemoryDatabase()


def test_memory_database_missing_key_raises(db):
    with pytest.raises(NotFoundError):
        db.get_value(b"missing")


def test_memory_database_read_state(db):
    db.insert(b"k", b"v")
    assert db.read_state([b"k", b"x"]) == [b"v", None]


def test_transaction_round_trip(db):
    storage.store_transaction(db, ID_A, -42, True, 472)
    assert storage.get_transaction(db, ID_A) == storage.TransactionInfo(-42, True, 472)


def test_failed_transaction_round_trip(db):
    storage.store_transaction(db, ID_A, 1000, False, 7)
    info = storage.get_transaction(db, ID_A)
    assert info.success is False and info.timestamp == 1000 and info.units == 7


def test_transaction_wire_layout(db):
    storage.store_transaction(db, ID_A, 5, True, 9)
    value = db.get_value(storage.prefix_tx_key(ID_A))
    assert len(value) == 17
    assert value[8] == 0x1


def test_missing_transaction(db):
    assert storage.get_transaction(db, ID_A) is None


def test_tx_key_layout():
    assert storage.prefix_tx_key(ID_A) == b"\x00" + ID_A


def test_balance_key_layout():
    assert storage.prefix_balance_key(PK_1, ID_A) == b"\x00" + PK_1 + ID_A


def test_missing_balance_is_zero(db):
    assert storage.get_balance(db, PK_1, ID_A) == 0


def test_set_and_add_balance(db):
    storage.set_balance(db, PK_1, ID_A, 100)
    storage.add_balance(db, PK_1, ID_A, 50)
    assert storage.get_balance(db, PK_1, ID_A) == 150
    assert storage.get_balance(db, PK_2, ID_A) == 0


def test_add_balance_overflow(db):
    storage.set_balance(db, PK_1, ID_A, storage.UINT64_MAX)
    with pytest.raises(InvalidBalanceError, match="could not add balance"):
        storage.add_balance(db, PK_1, ID_A, 1, hrp="token")
    assert storage.get_balance(db, PK_1, ID_A) == storage.UINT64_MAX


def test_sub_balance_to_zero_removes_record(db):
    storage.set_balance(db, PK_1, ID_A, 10)
    storage.sub_balance(db, PK_1, ID_A, 10)
    assert storage.prefix_balance_key(PK_1, ID_A) not in db
    assert storage.get_balance(db, PK_1, ID_A) == 0


def test_sub_balance_partial(db):
    storage.set_balance(db, PK_1, ID_A, 10)
    storage.sub_balance(db, PK_1, ID_A, 4)
    assert storage.get_balance(db, PK_1, ID_A) == 6


def test_sub_balance_underflow(db):
    storage.set_balance(db, PK_1, ID_A, 3)
    with pytest.raises(InvalidBalanceError) as info:
        storage.sub_balance(db, PK_1, ID_A, 4)
    assert str(info.value).startswith("invalid balance: could not subtract balance")
    assert storage.get_balance(db, PK_1, ID_A) == 3


def test_delete_balance(db):
    storage.set_balance(db, PK_1, ID_A, 3)
    storage.delete_balance(db, PK_1, ID_A)
    assert len(db) == 0


def test_balance_from_state(db):
    storage.set_balance(db, PK_1, ID_A, 77)
    assert storage.get_balance_from_state(db.read_state, PK_1, ID_A) == 77
    assert storage.get_balance_from_state(db.read_state, PK_2, ID_A) == 0


def test_read_state_errors_propagate():
    def broken(keys):
        raise OSError("disk failure")

    with pytest.raises(OSError):
        storage.get_balance_from_state(broken, PK_1, ID_A)


def test_asset_round_trip(db):
    storage.set_asset(db, ID_A, b"blah", 10, PK_1, True)
    assert storage.get_asset(db, ID_A) == storage.AssetInfo(b"blah", 10, PK_1, True)


def test_asset_empty_metadata(db):
    storage.set_asset(db, EMPTY_ID, b"", 0, PK_2, False)
    info = storage.get_asset_from_state(db.read_state, EMPTY_ID)
    assert info.metadata == b"" and info.warp is False and info.owner == PK_2


def test_asset_missing_and_delete(db):
    assert storage.get_asset(db, ID_A) is None
    storage.set_asset(db, ID_A, b"1", 5, PK_1, False)
    storage.delete_asset(db, ID_A)
    assert storage.get_asset(db, ID_A) is None
    assert storage.get_asset_from_state(db.read_state, ID_A) is None


def test_asset_key_layout():
    assert storage.prefix_asset_key(ID_A) == b"\x01" + ID_A


def test_asset_metadata_too_long(db):
    with pytest.raises(ValueError):
        storage.set_asset(db, ID_A, bytes(70000), 1, PK_1, False)


def test_order_round_trip(db):
    storage.set_order(db, ID_A, ID_B, 1, ID_C, 2, 4, PK_1)
    assert storage.get_order(db, ID_A) == storage.OrderInfo(ID_B, 1, ID_C, 2, 4, PK_1)
    assert storage.prefix_order_key(ID_A) == b"\x02" + ID_A


def test_order_delete(db):
    storage.set_order(db, ID_A, ID_B, 1, ID_C, 2, 4, PK_1)
    storage.delete_order(db, ID_A)
    assert storage.get_order(db, ID_A) is None


def test_loan_add_and_sub(db):
    assert storage.get_loan(db, EMPTY_ID, ID_B) == 0
    storage.add_loan(db, EMPTY_ID, ID_B, 100)
    storage.add_loan(db, EMPTY_ID, ID_B, 10)
    assert storage.get_loan(db, EMPTY_ID, ID_B) == 110
    assert storage.get_loan_from_state(db.read_state, EMPTY_ID, ID_B) == 110
    storage.sub_loan(db, EMPTY_ID, ID_B, 110)
    assert storage.prefix_loan_key(EMPTY_ID, ID_B) not in db


def test_loan_underflow(db):
    storage.set_loan(db, ID_A, ID_B, 5)
    with pytest.raises(InvalidBalanceError, match="could not subtract loan"):
        storage.sub_loan(db, ID_A, ID_B, 6)
    assert storage.get_loan(db, ID_A, ID_B) == 5


def test_loan_overflow(db):
    storage.set_loan(db, ID_A, ID_B, storage.UINT64_MAX)
    with pytest.raises(InvalidBalanceError, match="could not add loan"):
        storage.add_loan(db, ID_A, ID_B, 1)


def test_loan_key_layout():
    assert storage.prefix_loan_key(ID_A, ID_B) == b"\x03" + ID_A + ID_B


def test_other_keys():
    assert storage.height_key() == b"\x04"
    assert storage.incoming_warp_key_prefix(ID_A, ID_B) == b"\x05" + ID_A + ID_B
    assert storage.outgoing_warp_key_prefix(ID_C) == b"\x06" + ID_C


def test_rejects_short_identifiers(db):
    with pytest.raises(ValueError):
        storage.prefix_tx_key(b"\x01" * 31)
    with pytest.raises(ValueError):
        storage.set_balance(db, b"\x01" * 5, ID_A, 1)


def test_rejects_out_of_range_amount(db):
    with pytest.raises(ValueError):
        storage.set_balance(db, PK_1, ID_A, -1)
    with pytest.raises(ValueError):
        storage.set_loan(db, ID_A, ID_B, storage.UINT64_MAX + 1)