from .property import Property
from .tour import Tour

__all__ = ['Property', 'Tour']
