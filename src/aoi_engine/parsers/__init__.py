"""Parsers from interchange formats back to AOI features."""
