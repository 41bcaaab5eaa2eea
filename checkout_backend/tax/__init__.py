from .service import calculate_tax

__all__ = ["calculate_tax"]
