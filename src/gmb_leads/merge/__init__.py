from .main import LeadCollection

__all__ = ["LeadCollection"]
