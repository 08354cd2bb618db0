class NotionWorkspaceError(Exception):
    """Base class for errors raised by notion_workspace_manager."""


class ConfigError(NotionWorkspaceError):
    """Raised when configuration or command input is missing or malformed."""


class NotionAPIError(NotionWorkspaceError):
    """Raised when the Notion API answers with a non-success status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Notion API error ({status_code}): {body}")
        self.status_code = status_code
        self.body = body

    @property
    def is_retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500
