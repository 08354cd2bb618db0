from notion_workspace_manager.exceptions import ConfigError, NotionAPIError, NotionWorkspaceError


class TestNotionAPIError:
    def test_message_includes_status_and_body(self) -> None:
        error = NotionAPIError(404, '{"code": "object_not_found"}')
        assert str(error) == 'Notion API error (404): {"code": "object_not_found"}'
        assert error.status_code == 404
        assert error.body == '{"code": "object_not_found"}'

    def test_rate_limit_is_retryable(self) -> None:
        assert NotionAPIError(429, "").is_retryable

    def test_server_error_is_retryable(self) -> None:
        assert NotionAPIError(502, "").is_retryable

    def test_bad_request_is_not_retryable(self) -> None:
        assert not NotionAPIError(400, "").is_retryable


class TestExceptionInheritance:
    def test_api_error_inherits_base(self) -> None:
        assert issubclass(NotionAPIError, NotionWorkspaceError)

    def test_config_error_inherits_base(self) -> None:
        assert issubclass(ConfigError, NotionWorkspaceError)
        assert issubclass(ConfigError, Exception)
