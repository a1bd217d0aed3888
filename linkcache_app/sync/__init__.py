from .background_sync import BackgroundSync

__all__ = ["BackgroundSync"]
