"""ThoughtChain MCP - sequential thinking with structural guard rails."""

__version__ = "0.1.0"
