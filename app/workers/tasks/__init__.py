from app.workers.tasks.async_duels import run_async_duel_expiry

__all__ = [
    "run_async_duel_expiry",
]
