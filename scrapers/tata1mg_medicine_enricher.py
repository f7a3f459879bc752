#!/usr/bin/env python3
"""
Tata 1mg Medicine Enricher
Visits each medicine page from the A-Z index and extracts the full drug write-up:
uses, side effects, safety advice, substitutes, FAQs and more.

Resumable: medicines whose URL is already in the output file are skipped,
and one batch is processed per run.
"""

import argparse
import logging
import sys
from pathlib import Path

from scrapers.batch import enrich_batch, now_iso, resume_keys
from scrapers.browser import BrowserSession, light_scroll
from scrapers.storage import DATA_DIR, MedicineStore, flatten_records, load_json, save_json

OUTPUT_DIR = DATA_DIR / "1mg"
SOURCE_FILE = OUTPUT_DIR / "medicines_letters_B_to_Z.json"
OUTPUT_FILE = OUTPUT_DIR / "medicines_enriched.json"
STORE_FILE = OUTPUT_DIR / "medicine_store.json"
BATCH_SIZE = 100
SAVE_EVERY = 10
NAVIGATION_TIMEOUT_MS = 60000

SAFETY_KEYS = ['alcohol', 'pregnancy', 'breastfeeding', 'driving', 'kidney', 'liver']

DETAILS_JS = r"""
(safetyKeys) => {
    const headers = (sel) => Array.from(document.querySelectorAll(sel));
    const findHeader = (text) => headers('h2, h3, h4, div[class*="title"]')
        .find(h => h.innerText.trim().toUpperCase() === text.toUpperCase());

    const sectionContent = (text) => {
        const header = findHeader(text);
        if (!header) return null;
        const next = header.nextElementSibling;
        if (next && next.innerText.trim()) return next.innerText.trim();
        const container = header.parentElement;
        if (container && container.nextElementSibling) return container.nextElementSibling.innerText.trim();
        return null;
    };

    const sectionList = (text) => {
        const header = findHeader(text);
        if (!header) return [];
        let items = [];
        if (header.nextElementSibling) items = Array.from(header.nextElementSibling.querySelectorAll('li'));
        const container = header.parentElement;
        if (items.length === 0 && container && container.nextElementSibling) {
            items = Array.from(container.nextElementSibling.querySelectorAll('li'));
        }
        return items.map(li => li.innerText.trim());
    };

    const safetyAdvice = () => {
        const advice = {};
        const header = findHeader('SAFETY ADVICE');
        const container = header && header.parentElement;
        if (!container) return advice;
        container.querySelectorAll('div[class*="warning-top"]').forEach(row => {
            const labelEl = row.querySelector('span');
            if (!labelEl) return;
            const key = labelEl.innerText.trim().toLowerCase().replace(/\s+/g, '');
            if (!safetyKeys.includes(key)) return;
            const statusEl = row.querySelector('div[class*="warning-tag"]');
            advice[key] = {
                status: statusEl ? statusEl.innerText.trim().toUpperCase() : 'UNKNOWN',
                details: row.nextElementSibling ? row.nextElementSibling.innerText.trim() : ''
            };
        });
        return advice;
    };

    const missedDose = () => {
        const header = headers('h2, h3').find(h => h.innerText.includes('forget to take'));
        return header && header.nextElementSibling ? header.nextElementSibling.innerText.trim() : null;
    };

    const substitutes = () => {
        const header = headers('h2, h3, div').find(h => h.innerText.trim() === 'All substitutes');
        const container = header && header.closest('div[class*="DrugPane__title"]');
        if (!container || !container.nextElementSibling) return [];
        const list = container.nextElementSibling;
        const items = Array.from(list.querySelectorAll('div[class*="SubstituteItem__item"]'));
        if (items.length === 0) {
            return Array.from(list.querySelectorAll('a[href*="/drugs/"]')).map(link => {
                const parent = link.closest('div');
                const price = parent && parent.innerText.includes('₹')
                    ? (parent.innerText.match(/₹[\d\.]+/)?.[0] || 'Unknown') : 'Unknown';
                return {name: link.innerText.trim(), price, url: link.href};
            });
        }
        return items.map(item => ({
            name: item.querySelector('div[class*="name"]')?.innerText.trim() || 'Unknown',
            price: item.querySelector('div[class*="price"]')?.innerText.trim() || 'Unknown',
            url: item.querySelector('a')?.href || null
        }));
    };

    const patientConcerns = () => {
        const header = headers('h2, h3').find(h => h.innerText.trim() === 'Patient concerns');
        const container = header && header.parentElement && header.parentElement.nextElementSibling;
        if (!container) return [];
        const slides = Array.from(container.querySelectorAll('.slick-slide:not(.slick-cloned)'));
        return slides.length > 0 ? slides.map(s => s.innerText.trim()) : [container.innerText.trim()];
    };

    const faqs = () => headers('div[class*="Faqs__tile"]').map(tile => ({
        question: tile.querySelector('h3[class*="Faqs__ques"]')?.innerText.trim() || 'Unknown',
        answer: tile.querySelector('div[class*="Faqs__ans"]')?.innerText.trim() || 'Unknown'
    }));

    const body = document.body.innerText;
    const how = sectionContent('How');
    return {
        introduction: sectionContent('PRODUCT INTRODUCTION'),
        uses: sectionList('Uses of'),
        benefits: sectionContent('Benefits of'),
        side_effects: {
            summary: sectionContent('Side effects of'),
            common: sectionList('Common side effects of')
        },
        how_to_use: sectionContent('How to use'),
        how_it_works: how && how.toLowerCase().includes('works') ? how : sectionContent('How it works'),
        safety_advice: safetyAdvice(),
        missed_dose: missedDose(),
        substitutes: substitutes(),
        quick_tips: sectionList('Quick tips'),
        fact_box: {
            habit_forming: body.includes('Habit Forming\nNo') ? false : (body.includes('Habit Forming\nYes') ? true : 'Unknown'),
            therapeutic_class: sectionContent('Therapeutic Class') || (body.match(/Therapeutic Class\n(.*)/)?.[1] || null)
        },
        patient_concerns: patientConcerns(),
        faqs: faqs(),
        manufacturer_details: sectionContent('Marketer details')
    };
}
"""


def enrich_medicine(page, medicine: dict) -> dict:
    print(f"  Enriching: {medicine.get('name')} ({medicine['url']})")
    page.goto(medicine["url"], wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
    light_scroll(page, settle_ms=500)
    details = page.evaluate(DETAILS_JS, SAFETY_KEYS)
    return {**medicine, **details, "last_updated": now_iso()}


def enrich_error(medicine: dict, error: Exception) -> dict:
    # Failed URLs stay in the output and count as done on the next run
    print(f"  Failed to enrich {medicine['url']}: {error}")
    return {**medicine, "parsing_error": str(error), "last_updated": now_iso()}


def enrich_medicines(source_file: Path = SOURCE_FILE, output_file: Path = OUTPUT_FILE,
                     batch_size: int = BATCH_SIZE, session_factory=BrowserSession.launch,
                     delay: float = 0) -> list:
    if not Path(source_file).exists():
        raise FileNotFoundError(f"Source file not found: {source_file}")

    medicines = [m for m in flatten_records(load_json(source_file)) if m.get("url")]
    enriched = load_json(output_file, default=[]) or []
    done = resume_keys(enriched, key=lambda m: m["url"])
    remaining = [m for m in medicines if m["url"] not in done]

    print(f"Total: {len(medicines)} | Done: {len(enriched)} | Remaining: {len(remaining)}")
    if not remaining:
        print("All medicines have been enriched!")
        return enriched

    batch = remaining[:batch_size]
    print(f"Processing batch of {len(batch)} medicines...")

    with session_factory(headless=True) as session:
        return enrich_batch(
            batch,
            lambda m: enrich_medicine(session.page, m),
            key=lambda m: m["url"],
            delay=delay,
            done=done,
            existing=enriched,
            save=lambda records: save_json(output_file, records),
            save_every=SAVE_EVERY,
            on_error=enrich_error,
        )


def main():
    parser = argparse.ArgumentParser(description='Tata 1mg medicine enricher')
    parser.add_argument('--input', '-i', default=str(SOURCE_FILE), help='Medicine index JSON file')
    parser.add_argument('--output', '-o', default=str(OUTPUT_FILE), help='Enriched output JSON file')
    parser.add_argument('--batch-size', '-b', type=int, default=BATCH_SIZE)
    parser.add_argument('--store', action='store_true', help='Also upsert results into the medicine store')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")

    try:
        records = enrich_medicines(Path(args.input), Path(args.output), args.batch_size)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Saved {len(records)} medicines to {args.output}")

    if args.store:
        counts = MedicineStore(STORE_FILE, key="url").upsert_many(records)
        print(f"Store: {counts['created']} created, {counts['updated']} updated")


if __name__ == '__main__':
    main()
