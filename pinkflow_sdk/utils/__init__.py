from .datetime import from_iso, to_iso, utc_now

__all__ = ["from_iso", "to_iso", "utc_now"]
