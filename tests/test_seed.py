from backoffice.models.product import Product
from backoffice.seed import PRODUCTS, seed
from backoffice.services import ledger


def test_seed_books_opening_stock_once(db):
    assert seed(db, opening_stock=25) == len(PRODUCTS)
    assert seed(db, opening_stock=25) == 0

    levels = ledger.on_hand_by_product(db)
    assert sorted(levels.values()) == [25] * len(PRODUCTS)
    assert db.query(Product).count() == len(PRODUCTS)
