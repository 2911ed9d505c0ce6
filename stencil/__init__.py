"""HTML and JSON escaping helpers and a parser for Jinja-like template syntax."""

__version__ = "0.1.0"
__all__ = ["escape", "scanner", "expr", "target", "node", "ast"]