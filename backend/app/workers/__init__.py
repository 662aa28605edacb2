"""
Workers Package
Background workers for auto-calling
"""
from app.workers.auto_call_scheduler import AutoCallScheduler

__all__ = [
    "AutoCallScheduler"
]
