"""
lodge-bot - WhatsApp reservation bot connection layer.
"""

__version__ = "1.0.0"
