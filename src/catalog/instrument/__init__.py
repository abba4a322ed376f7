"""
Instrument

This module provides the instrument record model and its repository.
"""

from catalog.instrument.model import Attachment, FlexValue, Instrument
from catalog.instrument.repository import InstrumentRepository, SeedResult

__all__ = ["Attachment", "FlexValue", "Instrument", "InstrumentRepository", "SeedResult"]
