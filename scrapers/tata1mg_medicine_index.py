#!/usr/bin/env python3
"""
Tata 1mg A-Z Medicine Index Scraper
Walks drugs-all-medicines?page=N&label=L for each letter until a page comes back empty.
"""

import argparse
import logging
import string
import time
from pathlib import Path

from scrapers.browser import BrowserSession, light_scroll
from scrapers.errors import ExtractionEmpty
from scrapers.storage import DATA_DIR, save_json, snapshot

logger = logging.getLogger(__name__)

OUTPUT_DIR = DATA_DIR / "1mg"
INDEX_URL = "https://www.1mg.com/drugs-all-medicines?page={page}&label={letter}"
MAX_PAGES_PER_LETTER = 334  # ~10,000 medicines / 30 per page
PAGE_DELAY_SECONDS = 1.5
LETTER_DELAY_SECONDS = 30
NAVIGATION_TIMEOUT_MS = 90000

PACK_WORDS = ('strip', 'bottle', 'tube', 'pack')

MEDICINE_CARDS_JS = r"""
() => {
    const medicines = [];
    document.querySelectorAll('a[href^="/drugs/"]').forEach(card => {
        try {
            const name = card.querySelector('.bodyMediumBold.textMain, div.textMain')?.innerText?.trim();
            const formula = card.querySelector('div.truncateTo1, div.textAdditional.bodyRegular.truncateTo1')?.innerText?.trim();
            const texts = Array.from(card.querySelectorAll('div'))
                .map(d => d.innerText?.trim())
                .filter(t => t && t.length > 0 && t.length < 100);
            const priceText = card.querySelector('.textPrimary .bodyMediumBold, div[class*="textPrimary"] .bodyMediumBold')?.innerText?.trim();
            const priceMatch = priceText?.match(/[\d,]+\.?\d*/);
            const img = card.querySelector('img');

            if (name && name.length > 2) {
                medicines.push({
                    name,
                    formula: formula || 'N/A',
                    texts,
                    price: priceMatch ? priceMatch[0] : "",
                    image: img?.src || img?.getAttribute('data-src') || "",
                    url: card.href
                });
            }
        } catch (e) {}
    });
    return medicines;
}
"""


def index_url(letter: str, page: int) -> str:
    return INDEX_URL.format(page=page, letter=letter)


def pack_size(texts: list) -> str:
    """First short card line that looks like 'strip of 10 tablets'."""
    for text in texts:
        if any(word in text for word in PACK_WORDS):
            return text
    return 'N/A'


def extract_medicines(page) -> list:
    """Medicines on the loaded index page. Raises ExtractionEmpty when there are none."""
    medicines = []
    for card in page.evaluate(MEDICINE_CARDS_JS):
        texts = card.pop("texts", [])
        medicines.append({**card, "pack_size": pack_size(texts)})
    if not medicines:
        raise ExtractionEmpty(f"No medicines on {page.url}")
    return medicines


def scrape_letter(page, letter: str, max_pages: int = MAX_PAGES_PER_LETTER, start_page: int = 1,
                  sleep=time.sleep) -> list:
    medicines = []

    for page_num in range(start_page, max_pages + 1):
        print(f"  Page {page_num}/{max_pages}")
        try:
            page.goto(index_url(letter, page_num), wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
            light_scroll(page)
            found = extract_medicines(page)
        except ExtractionEmpty:
            print(f"  No medicines found, stopping letter {letter}")
            break
        except Exception as e:
            logger.error(f"Letter {letter} page {page_num}: {e}")
            break

        print(f"    → {len(found)} medicines")
        for m in found:
            medicines.append({"id": len(medicines) + 1, "letter": letter, **m})

        if page_num % 10 == 0:
            print(f"    Progress: {len(medicines)} medicines from {page_num} pages")
        sleep(PAGE_DELAY_SECONDS)

    return medicines


def scrape_letters(letters: list, output_file: Path, max_pages: int = MAX_PAGES_PER_LETTER,
                   session_factory=BrowserSession.launch, delay: float = LETTER_DELAY_SECONDS,
                   sleep=time.sleep) -> dict:
    """Scrape every letter in one headed browser, saving after each letter."""
    results = []

    with session_factory(headless=False, slow_mo=50) as session:
        for i, letter in enumerate(letters):
            print(f"\n[{i+1}/{len(letters)}] Letter: {letter}")
            medicines = scrape_letter(session.page, letter, max_pages, sleep=sleep)
            print(f"  Total for letter {letter}: {len(medicines)} medicines")

            results.append({"letter": letter, "medicine_count": len(medicines), "medicines": medicines})
            save_json(output_file, snapshot("Tata 1mg A-Z Index", "letters", results,
                                            status="in_progress",
                                            total_medicines=sum(r["medicine_count"] for r in results)))

            if i < len(letters) - 1:
                print(f"  Sleeping {delay}s before next letter...")
                sleep(delay)

    output = snapshot("Tata 1mg A-Z Index", "letters", results, status="complete",
                      total_medicines=sum(r["medicine_count"] for r in results))
    save_json(output_file, output)
    return output


def parse_letters(value: str) -> list:
    """'A' -> ['A'], 'B-Z' -> ['B', ..., 'Z'], 'A,C,F' -> ['A', 'C', 'F']"""
    value = value.upper().replace(' ', '')
    if '-' in value and len(value) == 3:
        start, end = value[0], value[2]
        return [c for c in string.ascii_uppercase if start <= c <= end]
    return [c for c in value.split(',') if c]


def main():
    parser = argparse.ArgumentParser(description='Tata 1mg A-Z medicine index scraper')
    parser.add_argument('--letters', '-l', default='A', help="Letters: 'A', 'B-Z' or 'A,C,F'")
    parser.add_argument('--max-pages', '-m', type=int, default=MAX_PAGES_PER_LETTER)
    parser.add_argument('--output', '-o', help='Output JSON file')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")

    letters = parse_letters(args.letters)
    name = letters[0] if len(letters) == 1 else f"{letters[0]}_to_{letters[-1]}"
    output_file = Path(args.output or OUTPUT_DIR / f"medicines_letters_{name}.json")

    print(f"Letters: {', '.join(letters)} | Max pages per letter: {args.max_pages}")
    output = scrape_letters(letters, output_file, args.max_pages)

    print(f"\nSaved {output['total_medicines']} medicines to {output_file}")


if __name__ == '__main__':
    main()
