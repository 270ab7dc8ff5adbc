"""
Create a demo user with a populated board for local testing.

Usage:
    python scripts/create_demo_board.py [email] [password]
"""

import asyncio
import sys
from datetime import datetime, timedelta
from uuid import uuid4

sys.path.insert(0, ".")

from sqlalchemy import select

from epitrello.config import settings
from epitrello.database import async_session_maker, create_all_tables
from epitrello.models import Board, BoardList, BoardMember, Card, User
from epitrello.services.activity_service import record_board_activity
from epitrello.utils.security import get_password_hash

DEMO_LISTS = {
    "To do": ["Write onboarding guide", "Plan sprint review", "Collect feedback"],
    "In progress": ["Drag and drop polish", "Presence avatars"],
    "Done": ["Project setup"],
}


async def get_or_create_user(db, username: str, email: str, password: str) -> User:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        print(f"User {email} already exists")
        return user

    user = User(id=uuid4(), username=username, email=email, password_hash=get_password_hash(password))
    db.add(user)
    await db.flush()
    print(f"Created user: {email}")
    return user


async def create_demo_board(email: str, password: str):
    if settings.is_sqlite:
        await create_all_tables()

    async with async_session_maker() as db:
        owner = await get_or_create_user(db, email.split("@")[0], email, password)
        teammate = await get_or_create_user(db, "teammate", "teammate@example.com", password)

        board = Board(
            id=uuid4(),
            title="Demo board",
            description="Sample lists and cards",
            owner_id=owner.id,
        )
        db.add(board)
        await db.flush()
        db.add(BoardMember(board_id=board.id, user_id=teammate.id, role="member"))
        record_board_activity(db, board.id, owner, "created", "board", board.id, board.title)
        print(f"Created board: {board.title}")

        for list_position, (title, card_titles) in enumerate(DEMO_LISTS.items()):
            board_list = BoardList(id=uuid4(), board_id=board.id, title=title, position=list_position)
            db.add(board_list)
            await db.flush()
            for card_position, card_title in enumerate(card_titles):
                db.add(
                    Card(
                        id=uuid4(),
                        list_id=board_list.id,
                        title=card_title,
                        position=card_position,
                        due_date=datetime.utcnow() + timedelta(days=7 * (card_position + 1)),
                    )
                )
            print(f"  {title}: {len(card_titles)} cards")

        await db.commit()
        print(f"\nLogin with {email} / {password}")


if __name__ == "__main__":
    demo_email = sys.argv[1] if len(sys.argv) > 1 else "demo@example.com"
    demo_password = sys.argv[2] if len(sys.argv) > 2 else "DemoPass123!"
    asyncio.run(create_demo_board(demo_email, demo_password))
