"""
Tests for the ToolHandler interface and argument helpers.
"""

import pytest


class TestArgumentHelpers:
    def test_require_str_trims(self) -> None:
        from legal_gateway.tools.base import require_str

        assert require_str({"query": "  поставка "}, "query") == "поставка"

    @pytest.mark.parametrize("args", [{}, {"query": None}, {"query": "   "}])
    def test_require_str_missing(self, args) -> None:
        from legal_gateway.core.exceptions import GatewayValidationError
        from legal_gateway.tools.base import require_str

        with pytest.raises(GatewayValidationError, match="query parameter is required") as exc_info:
            require_str(args, "query")

        assert exc_info.value.field == "query"

    def test_optional_str(self) -> None:
        from legal_gateway.tools.base import optional_str

        assert optional_str({"a": " x "}, "a") == "x"
        assert optional_str({"a": ""}, "a") is None
        assert optional_str({}, "a") is None

    @pytest.mark.parametrize(
        "args,expected",
        [({}, 50), ({"n": None}, 50), ({"n": 0}, 50), ({"n": ""}, 50), ({"n": "20"}, 20), ({"n": 500}, 100), ({"n": -5}, 1)],
    )
    def test_int_arg(self, args, expected) -> None:
        from legal_gateway.tools.base import int_arg

        assert int_arg(args, "n", 50, 1, 100) == expected

    def test_int_arg_rejects_text(self) -> None:
        from legal_gateway.core.exceptions import GatewayValidationError
        from legal_gateway.tools.base import int_arg

        with pytest.raises(GatewayValidationError, match="n must be an integer"):
            int_arg({"n": "many"}, "n", 1)

    @pytest.mark.parametrize(
        "value,expected",
        [(None, True), (False, False), (True, True), ("false", False), ("yes", True), (0, False)],
    )
    def test_bool_arg(self, value, expected) -> None:
        from legal_gateway.tools.base import bool_arg

        assert bool_arg({"flag": value}, "flag", True) is expected


class TestToolHandler:
    def test_abstract(self) -> None:
        from legal_gateway.tools.base import ToolHandler

        with pytest.raises(TypeError):
            ToolHandler()

    @pytest.mark.asyncio
    async def test_default_stream_delegates_to_execute(self) -> None:
        from legal_gateway.models.domain import CapabilityDescriptor, ToolFamily, ToolResult
        from legal_gateway.tools.base import ToolHandler

        class EchoTools(ToolHandler):
            family = ToolFamily.BUSINESS_REGISTRY

            def get_tool_definitions(self):
                return [CapabilityDescriptor(name="echo")]

            async def execute_tool(self, name, args):
                return ToolResult.from_payload(args)

        async def on_event(event):
            raise AssertionError("non-streaming tools emit no events")

        handler = EchoTools()
        result = await handler.execute_tool_stream("echo", {"a": 1}, on_event)

        assert handler.tool_names() == ["echo"]
        assert not handler.supports_streaming("echo")
        assert '"a": 1' in result.first_text()
