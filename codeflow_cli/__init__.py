"""CodeFlow CLI: structural flow analysis for TypeScript and JavaScript projects."""

__version__ = "0.3.0"
