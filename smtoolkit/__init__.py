"""
smtoolkit - DigiCert Software Trust Manager toolset acquisition and caching.
"""

try:
    from importlib.metadata import version

    __version__ = version("smtoolkit")
except Exception:
    __version__ = "0.1.0"
