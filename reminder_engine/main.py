from reminder_engine.api.main import app

__all__ = ["app"]
