from .routes import downloads_bp

__all__ = ["downloads_bp"]
