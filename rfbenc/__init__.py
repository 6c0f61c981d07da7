"""Framebuffers, pixel formats, logging and RFB rectangle encoders."""

__version__ = "0.10.0.dev0"