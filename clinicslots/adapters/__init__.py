"""
Adapters layer - Collaborator store implementations.
"""

from .memory_store import SAMPLE_DATA_FILE, InMemoryClinicStore

__all__ = ["InMemoryClinicStore", "SAMPLE_DATA_FILE"]
