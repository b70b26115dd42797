from sqlalchemy import select

from src.infrastructure.db.models import Floor
from src.infrastructure.db.session import get_db_session
from src.infrastructure.repositories.account_repository import AccountRepository

INITIAL_WALLET_BALANCE = 500


def seed_floors(db) -> None:
    floor_defs = [
        {"name": "Ground Floor", "normal_spots": 40, "disability_spots": 4, "is_free_limit": False},
        {"name": "First Floor", "normal_spots": 60, "disability_spots": 2, "is_free_limit": False},
        {"name": "Rooftop", "normal_spots": 0, "disability_spots": 0, "is_free_limit": True},
    ]

    for item in floor_defs:
        existing = db.execute(
            select(Floor).where(Floor.name == item["name"])
        ).scalar_one_or_none()
        if existing:
            existing.normal_spots = item["normal_spots"]
            existing.disability_spots = item["disability_spots"]
            existing.is_free_limit = item["is_free_limit"]
            continue

        db.add(Floor(**item))


def seed_global_account(db) -> None:
    account = AccountRepository(db).lock_account()
    if account.balance < INITIAL_WALLET_BALANCE:
        account.balance = INITIAL_WALLET_BALANCE


def main() -> None:
    with get_db_session() as db:
        seed_floors(db)
        seed_global_account(db)
    print("Seed complete: floors and global account ready.")


if __name__ == "__main__":
    main()
