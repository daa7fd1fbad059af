import pytest
from sqlalchemy.orm import sessionmaker

from database import create_db_engine, init_db
from core.room_manager import RoomManager
from core.store import SqlRoomStore, store_scope


@pytest.fixture()
def db_engine(tmp_path):
    # 檔案型 SQLite：多個執行緒各自拿連線時才會真的互相競爭
    engine = create_db_engine(f"sqlite:///{tmp_path / 'quikvote-test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture()
def store(session_factory):
    db = session_factory()
    yield SqlRoomStore(db)
    db.close()


class SnapshotStore(SqlRoomStore):
    """第一次 find_by_id 返回事先拿到的快照，模擬讀取之後房間才被別人改掉"""

    def __init__(self, db, snapshot):
        super().__init__(db)
        self._snapshot = snapshot

    def find_by_id(self, room_id):
        if self._snapshot is not None:
            snapshot, self._snapshot = self._snapshot, None
            return snapshot
        return super().find_by_id(room_id)


@pytest.fixture()
def stale_store(store):
    def _make(snapshot):
        return SnapshotStore(store.db, snapshot)
    return _make


@pytest.fixture()
def run_in_store(session_factory):
    """每次呼叫都用新的 Session，模擬互相獨立的呼叫端"""
    def _run(fn, *args, **kwargs):
        with store_scope(session_factory) as s:
            return fn(s, *args, **kwargs)
    return _run


@pytest.fixture()
def room(store):
    """alice 開的房間，bob 已加入"""
    created = RoomManager.create_room(store, "alice")
    return RoomManager.join(store, created.code, "bob")


@pytest.fixture()
def food_room(store, room):
    RoomManager.add_option(store, room.id, "alice", "pizza")
    RoomManager.add_option(store, room.id, "bob", "sushi")
    return RoomManager.get_room(store, room.id)
