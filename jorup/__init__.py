"""
jorup: jormungandr release and channel manager.

Import surface:
from jorup.services import node_commands
"""

__version__ = "0.9.0"
