from .timings import PRAYERS, DailyTimings, TimingsProvider, AladhanProvider

__all__ = ["PRAYERS", "DailyTimings", "TimingsProvider", "AladhanProvider"]
