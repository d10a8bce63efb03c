from speechcoach.backend.web import app


__all__ = ["app"]
