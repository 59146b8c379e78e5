"""
Payment CRUD操作（決済台帳）

台帳は追記専用のため、更新・削除の操作は提供しない。
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.base import CRUDBase
from app.models.enums import PaymentStatus
from app.models.payment import Payment
from app.schemas.payment import PaymentCreate


class CRUDPayment(CRUDBase[Payment, PaymentCreate, PaymentCreate]):
    """決済台帳 CRUD操作クラス"""

    async def append(
        self,
        db: AsyncSession,
        *,
        obj_in: PaymentCreate,
        auto_commit: bool = True
    ) -> Payment:
        """
        台帳に1行追記

        Args:
            db: データベースセッション
            obj_in: 追記する行
            auto_commit: 自動コミット（デフォルト: True）

        Returns:
            id・created_atが付与された台帳行

        Raises:
            StoreError: 書き込み失敗
            StoreUnavailable: タイムアウト・接続不可

        Note:
            - auto_commit=Falseの場合、トランザクション管理は呼び出し側で行う
        """
        return await self.guard(
            self.create(db=db, obj_in=obj_in, auto_commit=auto_commit),
            operation="append",
            transaction_key=obj_in.transaction_key
        )

    async def latest_paid(
        self,
        db: AsyncSession,
        transaction_key: str
    ) -> Optional[Payment]:
        """決済IDの最新のPaid行（有効な課金期間）を取得"""
        query = (
            select(self.model)
            .where(
                self.model.transaction_key == transaction_key,
                self.model.status == PaymentStatus.paid
            )
            .order_by(self.model.created_at.desc())
            .limit(1)
        )
        result = await self.guard(
            db.execute(query), operation="latest_paid", transaction_key=transaction_key
        )
        return result.scalars().first()

    async def latest_entry(
        self,
        db: AsyncSession,
        transaction_key: str
    ) -> Optional[Payment]:
        """決済IDの最新行（ステータス問わず）を取得"""
        query = (
            select(self.model)
            .where(self.model.transaction_key == transaction_key)
            .order_by(self.model.created_at.desc())
            .limit(1)
        )
        result = await self.guard(
            db.execute(query), operation="latest_entry", transaction_key=transaction_key
        )
        return result.scalars().first()

    async def get_history(
        self,
        db: AsyncSession,
        transaction_key: str
    ) -> List[Payment]:
        """決済IDの全履歴（古い順）"""
        query = (
            select(self.model)
            .where(self.model.transaction_key == transaction_key)
            .order_by(self.model.created_at.asc())
        )
        result = await self.guard(
            db.execute(query), operation="get_history", transaction_key=transaction_key
        )
        return list(result.scalars().all())


# インスタンス化
payment = CRUDPayment(Payment)
