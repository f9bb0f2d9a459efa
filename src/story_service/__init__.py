from .config import Settings, configure_logging
from .service import StoryService

__all__ = ["Settings", "StoryService", "configure_logging"]
