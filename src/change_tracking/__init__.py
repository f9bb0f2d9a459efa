from .detector import ChangeDetector

__all__ = ["ChangeDetector"]
