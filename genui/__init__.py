"""
genui - turns a natural-language request into a sandboxed, renderable UI fragment.
"""

__version__ = "0.1.0"
