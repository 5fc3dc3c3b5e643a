import threading

import pytest

from models import COLLECTION_FIELDS, DEFAULT_RECORDS
from repository import CsvRecordStore, StorageIOError, UnknownCollectionError


@pytest.fixture
def store(tmp_path):
    s = CsvRecordStore(tmp_path / "data")
    s.initialize()
    return s


def test_initialize_seeds_defaults(store):
    assert store.load("users") == DEFAULT_RECORDS["users"]
    assert store.load("resources") == DEFAULT_RECORDS["resources"]
    assert store.load("admins") == DEFAULT_RECORDS["admins"]
    assert store.load("bookings") == []

def test_initialize_writes_header_only_bookings(store):
    text = store.path_for("bookings").read_text()
    assert text == ",".join(COLLECTION_FIELDS["bookings"]) + "\n"

def test_initialize_is_idempotent(store):
    store.save("resources", [{"id": "van", "name": "Van", "type": "vehicle"}])
    store.initialize()
    assert store.load("resources") == [{"id": "van", "name": "Van", "type": "vehicle"}]

def test_load_missing_file_is_empty(tmp_path):
    s = CsvRecordStore(tmp_path)
    assert s.load("users") == []

def test_load_zero_byte_file_is_empty(store):
    store.path_for("users").write_text("")
    assert store.load("users") == []

def test_save_empty_writes_canonical_header(store):
    for name, fields in COLLECTION_FIELDS.items():
        store.save(name, [])
        assert store.path_for(name).read_text() == ",".join(fields) + "\n"
        assert store.load(name) == []

def test_round_trip_is_byte_equivalent(store):
    records = [
        {"id": "1", "name": "Smith, John", "department": "Marketing", "role": "individual", "email": ""},
        {"id": "2", "name": 'Sarah "SJ" Johnson', "department": "Sales", "role": "individual", "email": "NA"},
    ]
    store.save("users", records)
    before = store.path_for("users").read_bytes()

    loaded = store.load("users")
    assert loaded == records

    store.save("users", loaded)
    assert store.path_for("users").read_bytes() == before

def test_save_fills_missing_fields_with_empty(store):
    store.save("users", [{"id": "1", "name": "A"}, {"id": "2", "email": "b@x.com"}])
    assert store.load("users") == [
        {"id": "1", "name": "A", "department": "", "role": "", "email": ""},
        {"id": "2", "name": "", "department": "", "role": "", "email": "b@x.com"},
    ]

def test_save_follows_first_record_column_order(store):
    store.save("resources", [{"type": "room", "name": "Lab", "id": "lab"}])
    assert store.path_for("resources").read_text().splitlines()[0] == "type,name,id"

def test_save_appends_missing_canonical_fields_after_first_record_keys(store):
    store.save("users", [{"email": "a@x.com", "id": "1"}])
    assert store.path_for("users").read_text().splitlines()[0] == "email,id,name,department,role"

def test_round_trip_keeps_reordered_header(store):
    path = store.path_for("resources")
    path.write_text("name,id,type\nLab,lab,room\nGarage,garage,room\n")
    before = path.read_bytes()

    store.save("resources", store.load("resources"))
    assert path.read_bytes() == before

def test_save_keeps_extra_columns_after_canonical(store):
    store.save("resources", [{"id": "lab", "name": "Lab", "type": "room", "floor": "2"}])
    assert store.path_for("resources").read_text().splitlines()[0] == "id,name,type,floor"
    assert store.load("resources")[0]["floor"] == "2"

def test_load_unterminated_quote_raises(store):
    store.path_for("resources").write_text('id,name,type\n"lab,Lab,room\n')
    with pytest.raises(StorageIOError):
        store.load("resources")

def test_load_too_many_columns_raises(store):
    store.path_for("resources").write_text("id,name,type\nlab,Lab,room,extra\n")
    with pytest.raises(StorageIOError):
        store.load("resources")

def test_load_too_few_columns_raises(store):
    store.path_for("resources").write_text("id,name,type\nlab,Lab\n")
    with pytest.raises(StorageIOError):
        store.load("resources")

def test_save_into_missing_directory_raises(tmp_path):
    s = CsvRecordStore(tmp_path / "missing")
    with pytest.raises(StorageIOError):
        s.save("users", [])

def test_storage_error_is_an_oserror():
    assert issubclass(StorageIOError, OSError)

def test_unknown_collection(store):
    with pytest.raises(UnknownCollectionError):
        store.load("widgets")

def test_locked_cycles_do_not_lose_updates(store):
    store.save("bookings", [])

    def add(i):
        with store.locked("bookings"):
            records = store.load("bookings")
            records.append({"id": f"b{i}", "resource": "car", "date": "2024-01-10",
                            "startTime": f"{i:02d}:00", "endTime": f"{i:02d}:30", "user": "1"})
            store.save("bookings", records)

    threads = [threading.Thread(target=add, args=(i,)) for i in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(b["id"] for b in store.load("bookings")) == sorted(f"b{i}" for i in range(10))
