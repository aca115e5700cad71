"""Dual-mode (credentials / mobile OTP) authentication core."""

__version__ = "0.1.0"
