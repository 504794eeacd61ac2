"""Keep only the datasheets whose product codes the answer actually cites."""
from __future__ import annotations

import re
from typing import Sequence

from .heuristics import extract_product_codes, is_product_code
from .models import DatasheetReference
from .utils import normalize_code

_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
MIN_PREFIX_LENGTH = 4


def extract_cited_codes(text: str) -> set[str]:
    """Lowercased codes cited in ``text``, bold (``**CODE**`` or ``**CODE desc**``) or bare."""
    cited: set[str] = set()
    for match in _BOLD_RE.finditer(text or ""):
        words = match.group(1).split()
        if words:
            code = normalize_code(words[0])
            if is_product_code(code):
                cited.add(code)
    cited.update(extract_product_codes(text or ""))
    return cited


def _matches(code: str, cited: set[str]) -> bool:
    if code in cited:
        return True
    for candidate in cited:
        shorter, longer = sorted((code, candidate), key=len)
        if len(shorter) >= MIN_PREFIX_LENGTH and longer.startswith(shorter):
            return True
    return False


def filter_datasheets_by_citations(text: str, datasheets: Sequence[DatasheetReference]) -> list[DatasheetReference]:
    cited = extract_cited_codes(text)
    if not cited:
        return []
    return [sheet for sheet in datasheets if _matches(normalize_code(sheet.productCode), cited)]
