from .routes import url_validator_bp

__all__ = ["url_validator_bp"]
