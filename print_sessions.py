"""Print every stored session with its live flag and ordered transcript.

It reuses the same `DATABASE_DIR` behavior as the application via
`utils.database_init.AsyncDatabaseInitializer`, and reads through
`SessionDAL` so messages come out in store order.

Run: set the `DATABASE_DIR` environment variable and run
      `python print_sessions.py [SESSION_ID ...]`.
"""
import asyncio
import sys
from datetime import datetime, timezone
from typing import List, Optional

from dotenv import load_dotenv

from dal.session_dal import SessionDAL
from utils.database_init import AsyncDatabaseInitializer


def _fmt_ms(value: Optional[int]) -> str:
    if value is None:
        return "-"
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


async def _print_session(dal: SessionDAL, session_id: str) -> None:
    record = await dal.get_session(session_id)
    if record is None:
        print(f"Session {session_id}: not found\n")
        return

    live = "LIVE" if record.live.is_live else "ai"
    print(f"Session {session_id} [{live}] last activity {_fmt_ms(record.last_activity)}")
    if record.declared_context:
        print(f"  context: {record.declared_context!r}")
    if record.live.is_live:
        print(f"  operator joined {_fmt_ms(record.live.operator_joined_at)}")
    for msg in await dal.list_messages(session_id):
        print(f"  {_fmt_ms(msg.timestamp)} {msg.role.value:>8}: {msg.content}")
    print()


async def main(session_ids: List[str]) -> None:
    """Ensure DB exists and print the requested (or all) sessions."""
    initializer = AsyncDatabaseInitializer()
    dal = SessionDAL(initializer)
    if not session_ids:
        async with initializer.connection() as conn:
            cur = await conn.execute("SELECT session_id FROM sessions ORDER BY last_activity DESC")
            session_ids = [r[0] for r in await cur.fetchall()]
    for session_id in session_ids:
        await _print_session(dal, session_id)


if __name__ == "__main__":
    load_dotenv()
    asyncio.run(main(sys.argv[1:]))
