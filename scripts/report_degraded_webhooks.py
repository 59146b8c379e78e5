"""
副次処理に失敗したWebhookイベントの確認スクリプト

台帳は確定しているが、次回決済の予約登録・予約取消に失敗したイベントを一覧表示する。
PortOne管理画面の決済予約と突き合わせて手動で補正する際に使用する。

使用方法:
  python scripts/report_degraded_webhooks.py [--hours 24] [--limit 100]
"""
import argparse
import asyncio
import sys
from datetime import timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from app import crud
from app.db.base import utcnow
from app.db.session import AsyncSessionLocal
from app.schemas.webhook_event import WebhookEvent


async def report(hours: int, limit: int) -> int:
    since = utcnow() - timedelta(hours=hours) if hours > 0 else None

    async with AsyncSessionLocal() as db:
        events = await crud.webhook_event.get_degraded_events(db=db, since=since, limit=limit)
        rows = [WebhookEvent.model_validate(event) for event in events]

    print("\n" + "="*60)
    print(f"Degraded webhook events ({len(rows)} found):")
    print("="*60)
    for i, row in enumerate(rows, 1):
        print(f"\n{i}. {row.event_id}")
        print(f"     processed_at: {row.processed_at.isoformat()}")
        print(f"     payment_entry_id: {row.payment_entry_id}")
        print(f"     error_message: {row.error_message}")
    print("="*60 + "\n")
    return len(rows)


def main():
    parser = argparse.ArgumentParser(description="副次処理に失敗したWebhookイベントを表示")
    parser.add_argument("--hours", type=int, default=24, help="遡る時間（0で全期間）")
    parser.add_argument("--limit", type=int, default=100, help="表示件数上限")
    args = parser.parse_args()

    found = asyncio.run(report(args.hours, args.limit))
    sys.exit(1 if found else 0)


if __name__ == "__main__":
    main()
