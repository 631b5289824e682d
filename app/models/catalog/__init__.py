"""Catalogue des offres de formation."""
from app.models.catalog.training_offer import TrainingOffer

__all__ = ["TrainingOffer"]
