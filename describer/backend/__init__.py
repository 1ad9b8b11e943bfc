from .base import DescriptionBackend
from .http import HttpDescriptionBackend
from .mock import MockDescriptionBackend

__all__ = ['DescriptionBackend', 'HttpDescriptionBackend', 'MockDescriptionBackend']
