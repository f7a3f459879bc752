#!/usr/bin/env python3
"""
Tata 1mg Category Scraper
Scrapes product cards from 1mg category pages with a stealth, human-paced browser.
Sleeps between categories; progress is saved after every category.
"""

import argparse
import logging
import time
from pathlib import Path

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from scrapers.browser import BrowserSession, behave_like_human
from scrapers.storage import DATA_DIR, save_json, snapshot

OUTPUT_DIR = DATA_DIR / "1mg"
CATEGORY_DELAY_SECONDS = 30
NAVIGATION_TIMEOUT_MS = 90000

CATEGORIES = [
    ("Vitamins & Supplements", "https://www.1mg.com/categories/vitamins-supplements-328"),
    ("Ayurveda", "https://www.1mg.com/categories/ayurveda-104"),
]

ALL_CATEGORIES = CATEGORIES + [
    ("Homeopathy", "https://www.1mg.com/categories/homeopathy-105"),
    ("Fitness & Wellness", "https://www.1mg.com/categories/fitness-wellness-330"),
    ("Mom & Baby", "https://www.1mg.com/categories/mom-baby-329"),
    ("Devices", "https://www.1mg.com/categories/devices-106"),
    ("Personal Care", "https://www.1mg.com/categories/personal-care-108"),
    ("Health Food & Drinks", "https://www.1mg.com/categories/health-food-drinks-107"),
    ("Skin Care", "https://www.1mg.com/categories/skin-care-331"),
    ("Home Care", "https://www.1mg.com/categories/home-care-332"),
    ("Diabetic Care", "https://www.1mg.com/categories/diabetic-care-333"),
    ("Elderly Care", "https://www.1mg.com/categories/elderly-care-334"),
    ("Sexual Wellness", "https://www.1mg.com/categories/sexual-wellness-335"),
    ("Health Conditions", "https://www.1mg.com/categories/health-conditions-336"),
]

PRODUCT_CARD_SELECTOR = 'div[class*="style__product-card"], div[class*="ProductCard"], a[href*="/drugs/"]'

# Three selector strategies, most specific first
EXTRACT_PRODUCTS_JS = r"""
() => {
    const products = [];
    let containers = document.querySelectorAll('div[class*="style__product-card"]');
    if (containers.length === 0) {
        containers = document.querySelectorAll('div[class*="ProductCard"], div[class*="product"]');
    }
    if (containers.length === 0) {
        containers = Array.from(document.querySelectorAll('div')).filter(div => {
            const link = div.querySelector('a[href*="/drugs/"], a[href*="/otc/"]');
            const hasPrice = div.innerText.includes('₹') || div.innerText.includes('MRP');
            return link && hasPrice;
        });
    }

    containers.forEach(container => {
        try {
            const link = container.querySelector('a[href*="/drugs/"], a[href*="/otc/"]');
            if (!link) return;

            let name = container.querySelector('div[class*="name"], h3, h2, .product-name')?.innerText?.trim();
            if (!name) name = link.innerText?.split('\n')[0]?.trim();

            const manufacturer = container.querySelector('div[class*="manufacturer"], div[class*="Manufacturer"]')?.innerText?.trim();
            const packSize = container.querySelector('div[class*="pack"], div[class*="Pack"]')?.innerText?.trim();

            const text = container.innerText;
            const priceMatch = text.match(/₹\s*([\d,]+\.?\d*)/);
            const price = priceMatch ? priceMatch[1] : "";
            const mrpMatch = text.match(/MRP\s*₹\s*([\d,]+\.?\d*)/i);

            if (name && name.length > 2) {
                products.push({
                    name,
                    manufacturer: manufacturer || 'N/A',
                    pack_size: packSize || 'N/A',
                    price,
                    mrp: mrpMatch ? mrpMatch[1] : price,
                    prescription_required: text.includes('Prescription') ? 'Yes' : 'No',
                    url: link.href
                });
            }
        } catch (e) {}
    });
    return products;
}
"""


def extract_products(page) -> list:
    try:
        page.wait_for_selector(PRODUCT_CARD_SELECTOR, timeout=60000)
    except PlaywrightTimeoutError:
        print("  Product cards not found, trying alternative selectors...")
        page.wait_for_timeout(5000)
    return page.evaluate(EXTRACT_PRODUCTS_JS)


def scrape_category(url: str, session_factory=BrowserSession.launch) -> list:
    """Fresh headed browser per category, as the site blocks long-lived sessions."""
    with session_factory(headless=False, slow_mo=80) as session:
        page = session.page
        print(f"Loading: {url}")
        page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
        behave_like_human(page)
        return extract_products(page)


def scrape_categories(categories: list, output_file: Path, delay: float = CATEGORY_DELAY_SECONDS,
                      scrape=scrape_category, sleep=time.sleep) -> dict:
    results = []
    total_products = 0

    for i, (name, url) in enumerate(categories):
        print(f"\n[{i+1}/{len(categories)}] {name}")
        entry = {"category_id": i + 1, "category_name": name, "category_url": url}

        try:
            products = scrape(url)
            print(f"  → {len(products)} products")
            for p in products[:3]:
                print(f"    - {p['name']} - ₹{p['price']}")
            entry.update(product_count=len(products), products=products)
            total_products += len(products)
            status = "in_progress"
        except Exception as e:
            print(f"  Error: {e}")
            entry["error"] = str(e)
            status = "in_progress_with_errors"

        results.append(entry)
        save_json(output_file, snapshot("Tata 1mg", "categories", results, status=status,
                                        categories_completed=i + 1, total_products=total_products))

        if i < len(categories) - 1:
            print(f"  Sleeping {delay}s before next category...")
            sleep(delay)

    output = snapshot("Tata 1mg", "categories", results, status="complete",
                      categories_with_products=sum(1 for c in results if c.get("product_count")),
                      total_products=total_products)
    save_json(output_file, output)
    return output


def main():
    parser = argparse.ArgumentParser(description='Tata 1mg category scraper')
    parser.add_argument('--all', action='store_true', help='Scrape every known category')
    parser.add_argument('--delay', '-d', type=float, default=CATEGORY_DELAY_SECONDS, help='Seconds between categories')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")

    categories = ALL_CATEGORIES if args.all else CATEGORIES
    output_file = OUTPUT_DIR / ("tata1mg_all_categories.json" if args.all else "tata1mg_final.json")
    output = scrape_categories(categories, output_file, args.delay)

    print(f"\n=== Summary ===")
    print(f"Saved to: {output_file}")
    print(f"Total products: {output['total_products']}")
    for c in output["categories"]:
        if c.get("error"):
            print(f"  ✗ {c['category_name']}: error")
        else:
            print(f"  {'✓' if c['product_count'] else '-'} {c['category_name']}: {c['product_count']} products")


if __name__ == '__main__':
    main()
