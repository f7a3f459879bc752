"""
Price text helpers
"""

import re
from typing import Optional

PRICE_RE = re.compile(r'[\d,]+\.?\d*')
DISCOUNT_RE = re.compile(r'(\d+)\s*%')


def parse_price(text: Optional[str]) -> Optional[float]:
    """'₹1,234.50' -> 1234.5"""
    if not text:
        return None
    match = PRICE_RE.search(text)
    if not match:
        return None
    digits = match.group(0).replace(',', '')
    if not digits or digits == '.':
        return None
    return float(digits)


def parse_discount(text: Optional[str]) -> str:
    """'Save 12% off' -> '12%'"""
    if not text:
        return "0%"
    match = DISCOUNT_RE.search(text)
    return f"{match.group(1)}%" if match else "0%"
