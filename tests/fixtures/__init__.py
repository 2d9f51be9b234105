"""
Tribeworks Test Fixtures Package
Reusable factories and fakes for building lifecycle test data.
"""

from .factories import *
from .fakes import *
