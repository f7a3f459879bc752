#!/usr/bin/env python3
"""
Apollo Pharmacy SKU Scraper
Bulk price/availability lookup through the Apollo 247 GraphQL API.

Usage:
    python -m scrapers.apollo_sku_scraper NEU1021 VIT001
    python -m scrapers.apollo_sku_scraper --file skus.txt --pincode 500032
    python -m scrapers.apollo_sku_scraper --categories categories.json
    python -m scrapers.apollo_sku_scraper --search "fish oil" --search-limit 10
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from scrapers.apollo_client import ApolloClient, SkuQuery, DEFAULT_PINCODE, summarize_sku_info
from scrapers.batch import enrich_batch, is_failure, now_iso, resume_keys
from scrapers.errors import FATAL_ERRORS
from scrapers.storage import DATA_DIR, load_json, save_json

OUTPUT_DIR = DATA_DIR / "apollo"
RATE_LIMIT_SECONDS = 1.0

EXAMPLE_SKUS = ["NEU1021", "OTC123456", "MED789012"]
SEARCH_PAGE_SIZE = 20


def sku_record(client: ApolloClient, sku: str, pincode: str) -> dict:
    data = client.get_sku_info(SkuQuery(sku, pincode=pincode))
    price = (data.get("pdpPriceInfo") or {}).get("sellingPrice")
    print(f"  ✓ {sku} - Price: ₹{price if price is not None else 'N/A'}")
    return {"sku": sku, "timestamp": now_iso(), "data": data}


def sku_error(sku: str, error: Exception) -> dict:
    print(f"  ✗ {sku} - {error}")
    return {"sku": sku, "timestamp": now_iso(), "error": str(error)}


def scrape_skus(client: ApolloClient, skus: list, output_file: Path,
                pincode: str = "", delay: float = RATE_LIMIT_SECONDS,
                retry_failed: bool = False, sleep=time.sleep) -> list:
    """Look up every SKU not already in `output_file`, saving after each one."""
    existing = load_json(output_file, default=[]) or []
    if retry_failed:
        existing = [r for r in existing if not is_failure(r)]
    done = resume_keys(existing, key=lambda r: r["sku"])

    print(f"Total: {len(skus)} | Done: {len(done & set(skus))} | Rate limit: {delay}s")

    return enrich_batch(
        skus,
        lambda sku: sku_record(client, sku, pincode),
        delay=delay,
        done=done,
        existing=existing,
        save=lambda records: save_json(output_file, records),
        on_error=sku_error,
        sleep=sleep,
    )


def search_skus(client: ApolloClient, search_text: str, limit: int = SEARCH_PAGE_SIZE) -> list:
    """SKUs from the storefront search for `search_text`, in result order."""
    result = client.search_products(search_text, page_size=limit)
    products = result.get("products") or []
    print(f"Search '{search_text}': {len(products)} of {result.get('total_count', len(products))} products")
    return [p["sku"] for p in products if p.get("sku")]


def category_product(client: ApolloClient, sku: str, pincode: str, product_id: int) -> dict:
    details = summarize_sku_info(sku, client.get_sku_info(SkuQuery(sku, pincode=pincode)))
    pricing = details["pricing"]
    availability = details["availability"]
    print(f"    ✓ ₹{pricing['selling_price']} - {availability['pack_info']}")
    return {
        "product_id": product_id,
        "sku": sku,
        "name": f"Product {sku}",
        "formula": availability["pack_info"] or "N/A",
        "price": {
            "selling": pricing["selling_price"],
            "mrp": pricing["mrp"],
            "discount": f"{pricing['discount']}%" if pricing["discount"] is not None else "0%",
        },
        "availability": "In Stock" if availability["in_stock"] else "Out of Stock",
        "stats": details["stats"],
        "expiry_date": details["expiry_date"],
    }


def scrape_by_categories(client: ApolloClient, categories: list, output_file: Path,
                         pincode: str = "", delay: float = RATE_LIMIT_SECONDS, sleep=time.sleep) -> list:
    """
    Look up SKUs grouped by category.

    Args:
        categories: [{"name": "Pain Relief", "skus": ["PAIN001", ...]}, ...]
    """
    results = []

    for i, category in enumerate(categories):
        print(f"\n[{i+1}/{len(categories)}] Category: {category['name']}")
        skus = category.get("skus", [])
        ids = {}
        for sku in skus:
            ids.setdefault(sku, len(ids) + 1)

        products = enrich_batch(
            skus,
            lambda sku: category_product(client, sku, pincode, ids[sku]),
            delay=delay,
            on_error=lambda sku, e: {"product_id": ids[sku], "sku": sku, "error": str(e), "timestamp": now_iso()},
            sleep=sleep,
        )

        results.append({
            "category_id": i + 1,
            "category_name": category["name"],
            "product_count": len(products),
            "products": products,
        })
        save_json(output_file, results)

        if i < len(categories) - 1:
            sleep(delay)

    return results


def print_summary(records: list, output_file: Path, client: ApolloClient):
    failed = sum(1 for r in records if is_failure(r))
    print(f"\n=== Summary ===")
    print(f"Saved to: {output_file}")
    print(f"Total SKUs: {len(records)}")
    print(f"Successful: {len(records) - failed}")
    print(f"Failed: {failed}")
    print(f"Token refreshes: {client.refresh_count}")


def main():
    parser = argparse.ArgumentParser(description='Apollo Pharmacy SKU scraper')
    parser.add_argument('skus', nargs='*', help='SKUs to look up')
    parser.add_argument('--file', '-f', help='Text file with one SKU per line')
    parser.add_argument('--categories', '-c', help='JSON file with [{"name", "skus"}] groups')
    parser.add_argument('--search', '-s', help='Look up the SKUs returned by a product search')
    parser.add_argument('--search-limit', type=int, default=SEARCH_PAGE_SIZE, help='Search results to take')
    parser.add_argument('--pincode', '-p', default=DEFAULT_PINCODE, help='Delivery pincode')
    parser.add_argument('--output', '-o', help='Output JSON file')
    parser.add_argument('--delay', '-d', type=float, default=RATE_LIMIT_SECONDS, help='Seconds between requests')
    parser.add_argument('--retry-failed', action='store_true', help='Re-attempt SKUs that failed before')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")

    with ApolloClient() as client:
        try:
            if args.categories:
                with open(args.categories) as f:
                    categories = json.load(f)
                output_file = Path(args.output or OUTPUT_DIR / "organized_products.json")
                results = scrape_by_categories(client, categories, output_file, args.pincode, args.delay)
                products = [p for c in results for p in c["products"]]
                print_summary(products, output_file, client)
                return

            skus = list(args.skus)
            if args.file:
                with open(args.file) as f:
                    skus.extend(line.strip() for line in f if line.strip())
            if args.search:
                skus.extend(search_skus(client, args.search, args.search_limit))
            skus = skus or EXAMPLE_SKUS

            output_file = Path(args.output or OUTPUT_DIR / "products.json")
            records = scrape_skus(client, skus, output_file, args.pincode, args.delay, args.retry_failed)
            print_summary(records, output_file, client)
        except FATAL_ERRORS as e:
            print(f"Fatal: {e}")
            sys.exit(1)


if __name__ == '__main__':
    main()
