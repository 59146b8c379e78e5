import asyncio
import logging
from typing import Any, Awaitable, Generic, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StoreError, StoreUnavailable
from app.db.base import Base

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)
T = TypeVar("T")


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    基本的なCRUD操作

    auto_commit=Falseの場合はflushのみ行い、トランザクション管理は呼び出し側で行う。
    get/commitと各サブクラスの名前付き操作はguard()でタイムアウト付きになる。
    """

    def __init__(self, model: Type[ModelType], timeout: Optional[float] = None):
        self.model = model
        self.timeout = timeout

    async def guard(
        self,
        awaitable: Awaitable[T],
        *,
        operation: str,
        transaction_key: Optional[str] = None
    ) -> T:
        """
        DB操作をタイムアウト付きで実行し、失敗をStoreError系に変換

        - タイムアウト / 接続エラー → StoreUnavailable
        - IntegrityError → そのまま送出（呼び出し側で重複として扱う）
        - その他のSQLAlchemyエラー → StoreError
        """
        from app.core.config import settings

        timeout = self.timeout if self.timeout is not None else settings.STORE_TIMEOUT_SECONDS
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Store {operation} timed out: key={transaction_key}")
            raise StoreUnavailable(operation=operation, transaction_key=transaction_key) from e
        except IntegrityError:
            raise
        except OperationalError as e:
            logger.error(f"Store {operation} unavailable: key={transaction_key}, error={e}")
            raise StoreUnavailable(operation=operation, transaction_key=transaction_key) from e
        except SQLAlchemyError as e:
            logger.error(f"Store {operation} failed: key={transaction_key}, error={e}")
            raise StoreError(operation=operation, transaction_key=transaction_key) from e

    async def commit(self, db: AsyncSession, *, transaction_key: Optional[str] = None) -> None:
        await self.guard(db.commit(), operation="commit", transaction_key=transaction_key)

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        result = await self.guard(
            db.execute(select(self.model).where(self.model.id == id)),
            operation="get",
            transaction_key=str(id)
        )
        return result.scalars().first()

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: CreateSchemaType,
        auto_commit: bool = True
    ) -> ModelType:
        db_obj = self.model(**obj_in.model_dump())
        db.add(db_obj)
        if auto_commit:
            await db.commit()
            await db.refresh(db_obj)
        else:
            await db.flush()
        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, dict[str, Any]],
        auto_commit: bool = True
    ) -> ModelType:
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(db_obj, field, value)
        db.add(db_obj)
        if auto_commit:
            await db.commit()
            await db.refresh(db_obj)
        else:
            await db.flush()
        return db_obj
