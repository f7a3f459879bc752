import json

import pytest

from conftest import FakePage
from scrapers.apollo_browser_scraper import (
    PRODUCT_PAGE_JS, dedupe_by_sku, discover_category_products, enrich_discovered,
    product_details, scrape_product_page, scrape_product_urls,
)
from scrapers.errors import ApiError


def test_dedupe_by_sku_keeps_first_position_last_value():
    products = [
        {"sku": "NEU1021", "name": "Neuherbs Fish Oil"},
        {"sku": "VIT001", "name": "Vitamin C"},
        {"sku": "NEU1021", "name": "Neuherbs Deep Sea Fish Oil"},
    ]
    assert dedupe_by_sku(products) == [
        {"sku": "NEU1021", "name": "Neuherbs Deep Sea Fish Oil"},
        {"sku": "VIT001", "name": "Vitamin C"},
    ]


def test_discover_category_products_caps_results():
    listing = [{"sku": f"SKU{n:03d}", "name": f"Product {n}"} for n in range(10)] * 2

    def evaluate(expression, arg, page):
        return listing if "productList" in expression else None

    page = FakePage(evaluate=evaluate)
    products = discover_category_products(page, "https://www.apollopharmacy.in/category/vitamins", max_products=5)

    assert [p["sku"] for p in products] == ["SKU000", "SKU001", "SKU002", "SKU003", "SKU004"]
    assert page.visited == ["https://www.apollopharmacy.in/category/vitamins"]


def test_product_details_parses_prices():
    raw = {"name": "Neuherbs Deep Sea Fish Oil", "manufacturer": "Neuherbs", "price": "₹1,049.00",
           "mrp": "MRP ₹1,299", "discount": "19% off", "image": None}
    details = product_details(raw, "https://apollo/otc/x", 4)
    assert details["price"] == {"selling": 1049.0, "mrp": 1299.0, "discount": "19%"}
    assert details["consume_type"] == "N/A"
    assert details["product_id"] == 4


def test_scrape_product_page_without_name_fails():
    page = FakePage(evaluate=lambda e, a, p: {"name": None})
    with pytest.raises(ValueError):
        scrape_product_page(page, "https://apollo/otc/missing")


def test_scrape_product_urls_counts_only_complete(tmp_path):
    def evaluate(expression, arg, page):
        assert expression == PRODUCT_PAGE_JS
        return {"name": "Fish Oil", "price": "₹500"} if page.url.endswith("good") else {}

    page = FakePage(evaluate=evaluate)
    output = tmp_path / "direct.json"
    result = scrape_product_urls(page, ["https://apollo/otc/good", "https://apollo/otc/bad"], output,
                                 sleep=lambda s: None)

    assert result["total_products"] == 1
    assert result["products"][1]["error"] == "Could not extract details"
    assert json.loads(output.read_text())["total_products"] == 1


def test_enrich_discovered_merges_api_data():
    class Client:
        def get_sku_info(self, query):
            if query.sku == "BAD001":
                raise ApiError("not found")
            return {"stat": "OK", "pdpPriceInfo": {"sellingPrice": 250}, "tatInfo": {}}

    products = [{"sku": "NEU1021", "name": "Fish Oil"}, {"sku": "BAD001", "name": "Ghost"}]
    results = enrich_discovered(Client(), products, pincode="500032", sleep=lambda s: None)

    assert results[0]["pricing"]["selling_price"] == 250
    assert results[0]["name"] == "Fish Oil"
    assert results[1]["error"] == "not found"
    assert results[1]["sku"] == "BAD001"
