"""AutoDocGen - API documentation from TypeScript/JavaScript web projects."""

__version__ = "1.0.0"
