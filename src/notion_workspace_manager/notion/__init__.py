from notion_workspace_manager.notion.client import CacheTTLs, NotionClient

__all__ = ["CacheTTLs", "NotionClient"]
