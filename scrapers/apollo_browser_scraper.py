#!/usr/bin/env python3
"""
Apollo Pharmacy Browser Scraper
Discovers categories and product SKUs from the storefront, enriches them via the
GraphQL API, and reads full product details from direct product URLs.

Reuses the browser session that produced the API token.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from scrapers.apollo_auth import APOLLO_HOME
from scrapers.apollo_client import ApolloClient, SkuQuery, DEFAULT_PINCODE, summarize_sku_info
from scrapers.batch import enrich_batch, is_failure, now_iso
from scrapers.errors import FATAL_ERRORS
from scrapers.parsing import parse_discount, parse_price
from scrapers.storage import DATA_DIR, save_json, snapshot

OUTPUT_DIR = DATA_DIR / "apollo"
NAVIGATION_TIMEOUT_MS = 60000

# Example product URLs for direct detail scraping
PRODUCT_URLS = [
    "https://www.apollopharmacy.in/otc/neuherbs-deep-sea-fish-oil-lemon-flavoured-2500-mg-60-softgels",
]

CATEGORIES_JS = """
() => {
    const categoryList = [];
    const seen = new Set();
    document.querySelectorAll('a[href*="/category/"], a[href*="/otc"], a[href*="/medicines"]').forEach(link => {
        const href = link.href;
        const text = link.textContent?.trim();
        if (href && text && !seen.has(href) && text.length > 2 && text.length < 50) {
            seen.add(href);
            categoryList.push({name: text, url: href});
        }
    });
    return categoryList;
}
"""

PRODUCTS_JS = """
() => {
    const productList = [];
    document.querySelectorAll('a[href*="/medicine-info/"], a[href*="/otc/"]').forEach(link => {
        const href = link.href;
        let sku = null;
        const match = href.match(/\\/(medicine-info|otc)\\/([^/?#]+)/i);
        if (match && match[2]) {
            sku = match[2];
            const skuMatch = sku.match(/([A-Z]{3,}\\d{3,})/i);
            if (skuMatch) sku = skuMatch[1];
        }
        const dataSkuEl = link.closest('[data-sku]') || link.querySelector('[data-sku]');
        if (dataSkuEl) {
            const dataSku = dataSkuEl.getAttribute('data-sku');
            if (dataSku && dataSku.length > 2) sku = dataSku;
        }
        const nameEl = link.querySelector('h2, h3, [class*="name"], [class*="Name"], [class*="title"]') || link;
        const name = nameEl?.textContent?.trim();
        const priceEl = link.querySelector('[class*="price"], [class*="Price"]') ||
            link.closest('[class*="product"]')?.querySelector('[class*="price"]');
        const priceText = priceEl?.textContent?.trim();
        if (sku && sku.length > 2 && name && name.length > 3) {
            productList.push({sku: sku.toUpperCase(), name, price_text: priceText || null, url: href});
        }
    });
    return productList;
}
"""

PRODUCT_PAGE_JS = """
() => {
    const getText = (selector) => document.querySelector(selector)?.textContent?.trim() || null;
    const getAfterLabel = (labelText) => {
        const lines = document.body.innerText.split('\\n').map(l => l.trim()).filter(l => l);
        for (let i = 0; i < lines.length; i++) {
            if (lines[i] === labelText && i + 1 < lines.length) return lines[i + 1];
        }
        return null;
    };
    return {
        name: getText('h1'),
        manufacturer: getAfterLabel('Manufacturer/Marketer'),
        consume_type: getAfterLabel('Consume Type'),
        return_policy: getAfterLabel('Return Policy'),
        expiry_date: getAfterLabel('Expires on or after'),
        price: getText('[class*="SellingPrice"], [class*="sellingPrice"]'),
        mrp: getText('[class*="MRP"], [class*="mrp"]'),
        discount: getText('[class*="discount"], [class*="off"]'),
        image: document.querySelector('img[alt*="product"], img[class*="product"]')?.src || null,
    };
}
"""


def dedupe_by_sku(products: list) -> list:
    """Keep the last entry per SKU, in first-seen order."""
    unique = {}
    for p in products:
        unique[p["sku"]] = p
    return list(unique.values())


def discover_categories(page) -> list:
    print("Discovering categories...")
    page.goto(APOLLO_HOME, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
    page.wait_for_timeout(3000)
    categories = page.evaluate(CATEGORIES_JS)
    print(f"  → {len(categories)} categories")
    return categories


def discover_category_products(page, category_url: str, max_products: int = 50) -> list:
    print(f"  Discovering products from: {category_url}")
    page.goto(category_url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
    page.wait_for_timeout(3000)

    for _ in range(3):
        page.evaluate("() => window.scrollBy(0, window.innerHeight)")
        page.wait_for_timeout(1000)

    products = dedupe_by_sku(page.evaluate(PRODUCTS_JS))
    print(f"  → {len(products)} unique products")
    return products[:max_products]


def product_details(raw: dict, url: str, product_id: int) -> dict:
    return {
        "product_id": product_id,
        "name": raw["name"],
        "manufacturer": raw.get("manufacturer") or "N/A",
        "consume_type": raw.get("consume_type") or "N/A",
        "return_policy": raw.get("return_policy") or "N/A",
        "expiry_date": raw.get("expiry_date") or "N/A",
        "price": {
            "selling": parse_price(raw.get("price")) or 0,
            "mrp": parse_price(raw.get("mrp")) or 0,
            "discount": parse_discount(raw.get("discount")),
        },
        "image": raw.get("image"),
        "url": url,
    }


def scrape_product_page(page, url: str, product_id: int = 1) -> dict:
    """Read the detail block of one product page. Raises when no name is found."""
    page.goto(url, wait_until="networkidle", timeout=30000)
    page.wait_for_timeout(3000)
    raw = page.evaluate(PRODUCT_PAGE_JS)
    if not raw or not raw.get("name"):
        raise ValueError("Could not extract details")
    return product_details(raw, url, product_id)


def scrape_product_urls(page, urls: list, output_file: Path, delay: float = 2.0, sleep=time.sleep) -> dict:
    ids = {url: n + 1 for n, url in enumerate(urls)}
    results = enrich_batch(
        urls,
        lambda url: scrape_product_page(page, url, ids[url]),
        delay=delay,
        on_error=lambda url, e: {"product_id": ids[url], "url": url, "error": str(e), "timestamp": now_iso()},
        sleep=sleep,
    )
    good = [r for r in results if not is_failure(r)]
    output = snapshot("apollopharmacy.in", "products", results)
    output["total_products"] = len(good)
    save_json(output_file, output)
    print(f"Products with complete details: {len(good)} | Failed: {len(results) - len(good)}")
    return output


def enrich_discovered(client: ApolloClient, products: list, pincode: str, delay: float = 1.2, sleep=time.sleep) -> list:
    def enrich(product):
        details = summarize_sku_info(product["sku"], client.get_sku_info(SkuQuery(product["sku"], pincode=pincode)))
        return {**product, **details, "enriched_at": now_iso()}

    return enrich_batch(
        products,
        enrich,
        key=lambda p: p["sku"],
        delay=delay,
        sleep=sleep,
    )


def run_discovery(client: ApolloClient, output_file: Path, max_categories: int = 3,
                  max_products: int = 20, pincode: str = DEFAULT_PINCODE) -> dict:
    categories = discover_categories(client.page)[:max_categories]
    results = []

    for i, category in enumerate(categories):
        print(f"\n[{i+1}/{len(categories)}] {category['name']}")
        try:
            products = discover_category_products(client.page, category["url"], max_products)
        except FATAL_ERRORS:
            raise
        except Exception as e:
            print(f"  Error: {e}")
            results.append({**category, "error": str(e)})
            continue

        enriched = enrich_discovered(client, products, pincode)
        results.append({**category, "product_count": len(enriched), "products": enriched})
        save_json(output_file, snapshot("apollopharmacy.in", "categories", results, status="in_progress"))

    output = snapshot("apollopharmacy.in", "categories", results, status="complete",
                      token_refreshes=client.refresh_count)
    save_json(output_file, output)
    return output


def main():
    parser = argparse.ArgumentParser(description='Apollo Pharmacy browser scraper')
    parser.add_argument('--urls', nargs='*', help='Scrape these product URLs instead of discovering')
    parser.add_argument('--max-categories', type=int, default=3)
    parser.add_argument('--max-products', type=int, default=20)
    parser.add_argument('--pincode', '-p', default=DEFAULT_PINCODE)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")

    with ApolloClient() as client:
        try:
            if args.urls is not None:
                output_file = OUTPUT_DIR / "complete_products_direct.json"
                scrape_product_urls(client.page, args.urls or PRODUCT_URLS, output_file)
            else:
                output_file = OUTPUT_DIR / "discovered_products.json"
                output = run_discovery(client, output_file, args.max_categories, args.max_products, args.pincode)
                print(f"\nSaved {output['total_categories']} categories to {output_file}")
        except FATAL_ERRORS as e:
            print(f"Fatal: {e}")
            sys.exit(1)


if __name__ == '__main__':
    main()
