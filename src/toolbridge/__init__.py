"""
Tool Bridge - pont entre une UI non fiable et des serveurs d'outils MCP (stdio).
"""

__version__ = "1.0.0"
