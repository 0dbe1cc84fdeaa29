from pocketbinder.db.database import get_session, init_db
from pocketbinder.db.operations import (
    delete_user_card,
    get_user_card,
    get_user_cards,
    increment_card_quantity,
    insert_user_card,
    set_card_quantity,
)

__all__ = [
    "delete_user_card",
    "get_session",
    "get_user_card",
    "get_user_cards",
    "increment_card_quantity",
    "init_db",
    "insert_user_card",
    "set_card_quantity",
]
