"""
Mocker - configuration-driven HTTP mock server.
"""

__version__ = '1.0.0'
