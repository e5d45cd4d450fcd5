from .main import ProspectFetcher
from .prompt import build_search_prompt

__all__ = ["ProspectFetcher", "build_search_prompt"]
