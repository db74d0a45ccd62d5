from . import deckhand  # noqa:F401
