"""
Data cleaning module for AquaWatch.

Column standardisation and geographic name cleaning applied to uploaded
scheme and sensor sheets before they are validated.
"""

from .columns import normalize_text_field, standardize_columns
from .location_cleaner import clean_location_columns

__all__ = ['clean_location_columns', 'normalize_text_field', 'standardize_columns']
