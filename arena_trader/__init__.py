"""
Arena Trader - rule-based and LLM-backed agents paper trading side by side.
"""

__version__ = "0.1.0"
