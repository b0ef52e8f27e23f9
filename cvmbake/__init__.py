"""Build custom Tencent Cloud CVM images."""

__version__ = "0.1.0"
