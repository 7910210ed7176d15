from __future__ import annotations

import logging
import re
import time
from typing import Protocol


logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV-"
FIRST_INVOICE_NUMBER = 1001
UNPARSABLE_FALLBACK = 1000

_SUFFIX_PATTERN = re.compile(rf"^{re.escape(INVOICE_PREFIX)}(\d+)")


class LatestInvoiceSource(Protocol):
    def latest_invoice_number(self) -> str | None: ...


def format_invoice_number(value: int) -> str:
    return f"{INVOICE_PREFIX}{value:04d}"


def parse_invoice_suffix(invoice_number: str | None) -> int:
    match = _SUFFIX_PATTERN.match((invoice_number or "").strip())
    if not match:
        return UNPARSABLE_FALLBACK
    return int(match.group(1))


def fallback_invoice_number(now_ms: int | None = None) -> str:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{INVOICE_PREFIX}{str(stamp)[-4:]}"


def next_invoice_number(source: LatestInvoiceSource) -> str:
    try:
        latest = source.latest_invoice_number()
    except Exception:
        # Numbering must never block invoice creation.
        logger.warning("Could not read the latest invoice number, using timestamp fallback", exc_info=True)
        return fallback_invoice_number()

    if latest is None:
        logger.info("No existing invoices, starting with %s", format_invoice_number(FIRST_INVOICE_NUMBER))
        return format_invoice_number(FIRST_INVOICE_NUMBER)

    next_number = format_invoice_number(parse_invoice_suffix(latest) + 1)
    logger.debug("Last invoice number %s, next %s", latest, next_number)
    return next_number
