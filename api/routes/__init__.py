"""API route modules."""
from api.routes import attempts, mistakes, reports, results, review

__all__ = ["attempts", "mistakes", "reports", "results", "review"]
