"""Image services package."""

from finance_tracker.services.image.quality import assess_image_quality

__all__ = ["assess_image_quality"]
