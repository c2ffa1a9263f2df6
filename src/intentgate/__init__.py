"""
Intentgate - intent routing and quality gating for AI coding assistants.

Classifies free-text requests (pattern rules, optional semantic classifier,
scored fallback) into routing directives, and wraps external static-analysis
tools in a bounded validate/repair loop.
"""

__version__ = "0.4.0"
