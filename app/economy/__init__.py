from app.economy.progress.service import ProgressLedger

__all__ = [
    "ProgressLedger",
]
