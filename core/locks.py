"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

PostgreSQL：SELECT ... FOR UPDATE 行級悲觀鎖
SQLite：FOR UPDATE 會被忽略，改由 database.create_db_engine 的
BEGIN IMMEDIATE 讓整個 transaction 串行化
"""
from sqlalchemy.orm import Query, Session, selectinload

from models import Room


def with_room_lock(room_id: str, db: Session) -> Query:
    """
    鎖定一個 Room（行級鎖）

    使用場景：
    - 加入參與者 / 選項、寫入投票、lock in 之前
    - 需要確保「檢查 state = open」和「寫入」之間 Room 不被關閉

    範例：
        room = with_room_lock(room_id, db).first()
        if not room:
            raise RoomNotFound(room_id)
        if room.state != RoomState.OPEN:
            raise RoomClosed(room_id)
        db.add(RoomOption(room_id=room_id, name=option))

    參數：
        room_id: Room id
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
        - populate_existing：同一個 session 之前讀過的舊值會被覆蓋
    """
    return db.query(Room).filter(
        Room.id == room_id
    ).populate_existing().with_for_update(nowait=False)


def load_room(room_id: str, db: Session) -> Query:
    """
    讀取 Room 連同 participants / options / votes（不加鎖）

    寫入一律由 with_room_lock 鎖定並重新檢查，這裡讀到的只是快照
    """
    return db.query(Room).filter(Room.id == room_id).options(
        selectinload(Room.participants),
        selectinload(Room.options),
        selectinload(Room.votes),
    ).populate_existing()
