"""
Testing utilities for code that talks to a block master.
"""

from .fake_master import FakeBlockMaster, FakeMasterServer

__all__ = [
    "FakeBlockMaster",
    "FakeMasterServer",
]
