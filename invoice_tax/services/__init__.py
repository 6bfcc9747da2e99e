"""Backend collaborators"""

from .code_api_client import CodeApiClient, CodeApiError

__all__ = ["CodeApiClient", "CodeApiError"]
