"""
chain-tools: compile action chains into chunked Salt state files.
"""

__version__ = "0.1.0"
