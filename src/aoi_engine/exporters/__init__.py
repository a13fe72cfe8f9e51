"""Exporters from AOI features to interchange formats."""
