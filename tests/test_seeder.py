import database
import seeder


def test_import_seeds_products_and_admin(mongo):
    assert seeder.main([]) == 0
    assert mongo["product"].count_documents({}) == len(seeder.DEMO_PRODUCTS) == 4
    admins = list(mongo["user"].find({}))
    assert len(admins) == 1
    assert admins[0]["is_admin"] is True
    assert admins[0]["email"] == seeder.ADMIN_EMAIL


def test_import_keeps_only_real_discounts(mongo):
    seeder.main([])
    for product in mongo["product"].find({}):
        assert "original_price" not in product or product["original_price"] > product["price"]
    on_sale = mongo["product"].count_documents({"original_price": {"$exists": True}})
    assert on_sale == 2


def test_import_replaces_existing_data(mongo):
    seeder.main([])
    seeder.main([])
    assert mongo["product"].count_documents({}) == 4
    assert mongo["user"].count_documents({}) == 1


def test_destroy_flag_empties_collections(mongo):
    seeder.main([])
    mongo["order"].insert_one({"user_id": "x", "total_price": 60})
    assert seeder.main(["-d"]) == 0
    for name in ("order", "product", "user"):
        assert mongo[name].count_documents({}) == 0


def test_no_database(monkeypatch):
    monkeypatch.setattr(database, "db", None)
    assert seeder.main([]) == 1
