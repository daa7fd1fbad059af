from contextlib import contextmanager
from functools import lru_cache, wraps
import logging

from pydantic_settings import BaseSettings
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from core.exceptions import QuikVoteException, StoreUnavailable

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./quikvote.db"
    sqlite_busy_timeout: float = 30.0

    room_code_length: int = 4
    room_code_max_attempts: int = 20

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()


def create_db_engine(database_url: str) -> Engine:
    """
    建立 SQLAlchemy Engine

    SQLite 需要特殊設定：
    - check_same_thread=False：允許多執行緒共用連線池
    - SQLite 會忽略 SELECT ... FOR UPDATE，所以每個 transaction 都以
      BEGIN IMMEDIATE 開始，讓寫入者在 transaction 開頭就排隊，
      效果等同於整個資料庫的行級鎖
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        connect_args={
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout,
        },
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        # 交給下面的 begin listener 自己發出 BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = create_db_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db(bind: Engine = None) -> None:
    """建立所有資料表（已存在則略過）"""
    import models  # noqa: F401  確保所有 table 都註冊到 Base.metadata

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def get_db(session_factory=None):
    """
    提供 Database Session

    使用 with 確保 session 在使用完畢後會被關閉
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保整個操作的原子性

    使用方式：
        @transactional
        def some_business_logic(store: RoomStore, ..., deadline=None):
            # 所有 DB 操作都在一個 transaction 內
            store.conditional_append_option(room_id, option)
            # 不需要手動 commit，decorator 會處理

    第一個參數必須是 unit of work（有 commit() / rollback() 的物件），
    例如 SQLAlchemy Session 或 RoomStore。

    如果呼叫端傳入 deadline：
        - 執行前檢查一次
        - commit 前再檢查一次，過期就 rollback，不留下任何部分修改
        - commit 之後不再檢查（已生效的修改無法撤回）

    如果函式內發生異常：
        - 自動 rollback
        - SQLAlchemyError 轉成 StoreUnavailable
        - 業務異常原樣重新拋出（讓上層處理）
        - 不會自動重試
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        uow = args[0] if args else kwargs.get("store", kwargs.get("db"))
        if uow is None or not hasattr(uow, "commit") or not hasattr(uow, "rollback"):
            raise ValueError(
                f"@transactional requires a unit of work as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        deadline = kwargs.get("deadline")

        try:
            if deadline is not None:
                deadline.check()
            result = func(*args, **kwargs)
            if deadline is not None:
                deadline.check()
            uow.commit()
            return result
        except QuikVoteException as e:
            logger.info(f"{func.__name__} rejected: {e}")
            uow.rollback()
            raise
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            uow.rollback()
            raise StoreUnavailable(str(e)) from e
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            uow.rollback()
            raise

    return wrapper
