"""AOI Mapper HTTP service."""
