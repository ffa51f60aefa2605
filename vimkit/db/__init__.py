from vimkit.db.models import ENTITY_MODELS, Base, EntityMixin, TimeStampMixin

__all__ = [
    "ENTITY_MODELS",
    "Base",
    "EntityMixin",
    "TimeStampMixin",
]
