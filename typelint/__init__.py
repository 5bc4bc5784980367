"""
typelint: a tree-sitter based checker for TypeScript and JavaScript comparisons.
"""

__version__ = "0.1.0"
