"""Mission-specific dataset wrappers."""

from . import xmm
from .xmm import XmmData, XmmEPIC, XmmNewtonDevice

__all__ = ['xmm', 'XmmData', 'XmmEPIC', 'XmmNewtonDevice']
