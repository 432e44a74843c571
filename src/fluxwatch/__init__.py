"""
FluxWatch - Device monitoring agent for Linux/Unraid hosts
"""

__version__ = '1.0.1'
