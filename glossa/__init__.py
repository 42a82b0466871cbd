"""
glossa - document translation through LLM and MT vendors

Protects URLs and markup with reversible placeholders, sends the masked
text to a configured vendor and checks the reply kept its HTML/JSON shape.
"""

__version__ = "0.1.0"
