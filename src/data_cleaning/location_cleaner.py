"""
Location cleaner for MJP scheme and sensor sheets.

This module provides deterministic, rule-based cleaning for the geographic
hierarchy columns (region, division, sub_division, circle, block, village_name).
Exact-match filters only work when every sheet spells a place the same way, so
names are normalised here before records reach the dashboard core.

Key Features:
- Preserves original data in *_raw columns for auditability
- Normalizes Unicode dashes, invisible characters and whitespace
- Resolves region abbreviations and spelling variants using fuzzy matching
- Blank cells become missing values instead of empty strings
"""

import logging
import re
import unicodedata
from collections import Counter
from typing import Dict, List, Optional

import pandas as pd
from rapidfuzz import fuzz, process

# Configure logging
logger = logging.getLogger(__name__)


# ============================================================================
# Canonical Location Mappings
# ============================================================================

# MJP regions of Maharashtra, keyed by lowercase variant
CANONICAL_REGION_MAPPING = {
    'amravati': 'Amravati',
    'amaravati': 'Amravati',
    'chhatrapati sambhajinagar': 'Chhatrapati Sambhajinagar',
    'chh. sambhajinagar': 'Chhatrapati Sambhajinagar',
    'sambhajinagar': 'Chhatrapati Sambhajinagar',
    'aurangabad': 'Chhatrapati Sambhajinagar',
    'cs': 'Chhatrapati Sambhajinagar',
    'konkan': 'Konkan',
    'nagpur': 'Nagpur',
    'nashik': 'Nashik',
    'nasik': 'Nashik',
    'pune': 'Pune',
    'poona': 'Pune',
}

# Levels that get canonical resolution; finer levels are only normalised
CANONICAL_MAPPINGS = {
    'region': CANONICAL_REGION_MAPPING,
}

DEFAULT_LOCATION_COLUMNS = ['region', 'division', 'sub_division', 'circle', 'block', 'village_name']


# ============================================================================
# Unicode and Text Normalization Functions
# ============================================================================

def normalize_unicode(text: str) -> Optional[str]:
    """
    Normalize Unicode text to canonical form.

    Converts various Unicode representations to standard form:
    - NFKC normalization for compatibility characters
    - Replaces Unicode hyphens/dashes with standard hyphen
    - Removes zero-width spaces and other invisible characters

    Example:
        >>> normalize_unicode("Nagpur–Rural")
        'Nagpur-Rural'
    """
    if text is None or (not isinstance(text, str) and pd.isna(text)):
        return None

    text = unicodedata.normalize('NFKC', str(text))

    unicode_hyphens = [
        '\u2010',  # Hyphen
        '\u2011',  # Non-breaking hyphen
        '\u2012',  # Figure dash
        '\u2013',  # En dash
        '\u2014',  # Em dash
        '\u2212',  # Minus sign
    ]
    for dash in unicode_hyphens:
        text = text.replace(dash, '-')

    invisible_chars = [
        '\u200B',  # Zero-width space
        '\u200C',  # Zero-width non-joiner
        '\u200D',  # Zero-width joiner
        '\uFEFF',  # Zero-width no-break space
    ]
    for char in invisible_chars:
        text = text.replace(char, '')

    return text


def clean_location_text(text: str) -> Optional[str]:
    """
    Clean a single place name.

    Processing steps:
    1. Unicode normalization
    2. Collapse runs of whitespace and tidy spacing around hyphens
    3. Strip leading/trailing whitespace
    4. Blank or placeholder values become None

    Unlike free-text addresses, MJP division and block names can contain
    digits ("Division No. 2"), so digits are kept and case is left alone.

    Example:
        >>> clean_location_text("  Nagpur   Division  1 ")
        'Nagpur Division 1'
        >>> clean_location_text("  -  ") is None
        True
    """
    text = normalize_unicode(text)
    if text is None:
        return None

    text = re.sub(r'\s+', ' ', text)
    text = re.sub(r'\s*-\s*', '-', text)
    text = text.strip(' -')

    if not text or text.lower() in {'nan', 'none', 'null', 'na', 'n/a'}:
        return None

    return text


# ============================================================================
# Fuzzy Matching for Canonical Resolution
# ============================================================================

def resolve_to_canonical(
    location: str,
    canonical_mapping: Dict[str, str],
    threshold: int = 88
) -> str:
    """
    Resolve location name to canonical form using fuzzy matching.

    Uses rapidfuzz against the known variants. Exact (case-insensitive)
    matches win; otherwise the best match above `threshold` is used.

    Returns:
        Canonical location name or the input if no match is found

    Example:
        >>> resolve_to_canonical("Amarawati", CANONICAL_REGION_MAPPING)
        'Amravati'
    """
    if not location:
        return location

    location_lower = location.lower()

    if location_lower in canonical_mapping:
        return canonical_mapping[location_lower]

    result = process.extractOne(
        location_lower,
        list(canonical_mapping.keys()),
        scorer=fuzz.ratio,
        score_cutoff=threshold
    )

    if result:
        matched_key, score, _ = result
        canonical_name = canonical_mapping[matched_key]
        logger.debug(f"Fuzzy match: '{location}' -> '{canonical_name}' (score: {score:.0f})")
        return canonical_name

    return location


# ============================================================================
# Main Cleaning Function
# ============================================================================

def clean_location_columns(
    df: pd.DataFrame,
    location_cols: List[str] = None,
    add_raw_columns: bool = False
) -> pd.DataFrame:
    """
    Clean the geographic hierarchy columns of a record frame.

    Args:
        df: Input DataFrame with location columns
        location_cols: Columns to clean (defaults to every hierarchy column)
        add_raw_columns: If True, preserves original values in *_raw columns

    Returns:
        Cleaned copy of the DataFrame. Rows are never dropped: a record with
        a blank block still belongs to its region.
    """
    if location_cols is None:
        location_cols = DEFAULT_LOCATION_COLUMNS

    location_cols = [col for col in location_cols if col in df.columns]

    if not location_cols:
        logger.warning("No location columns found in DataFrame")
        return df.copy()

    df_clean = df.copy()
    corrections = {}

    logger.info(f"Cleaning {len(location_cols)} location column(s) for {len(df_clean):,} rows")

    for col in location_cols:
        if add_raw_columns:
            df_clean[f'{col}_raw'] = df_clean[col].copy()

        df_clean[col] = df_clean[col].map(clean_location_text).astype(object)

        blanked = int(df_clean[col].isna().sum() - df[col].isna().sum())
        if blanked > 0:
            logger.debug(f"  - {col}: {blanked:,} blank entries set to missing")

        mapping = CANONICAL_MAPPINGS.get(col)
        if mapping:
            before_resolution = df_clean[col].copy()
            df_clean[col] = df_clean[col].map(
                lambda x: resolve_to_canonical(x, mapping) if x is not None and pd.notna(x) else x
            )

            changed = (before_resolution != df_clean[col]) & before_resolution.notna()
            if changed.any():
                corrections[col] = Counter(zip(before_resolution[changed], df_clean[col][changed]))
                logger.info(f"  - {col}: resolved {int(changed.sum()):,} variants to canonical names")

    for col, counter in corrections.items():
        for (original, corrected), count in counter.most_common(5):
            logger.debug(f"  {col}: {original!s:30s} -> {corrected!s:30s} ({count:,} times)")

    return df_clean
