"""Tests for tool definitions, routing and argument repair."""

import pytest

from salesbot.agent.router import ArgumentRepairer, ToolRouter, extract_json_object
from salesbot.agent.tools import ParameterKind, ParameterShape, ToolDefinition, build_sales_tools
from salesbot.agent.tools.schema import unwrap_value_wrappers
from salesbot.exceptions.agent import ToolArgumentException, ToolNotFoundException
from salesbot.models.sales import InformationRequest
from tests.fakes import FakeSimpleLLM


@pytest.fixture
def sales_tools(sales_service, retriever):
    return build_sales_tools(sales_service, retriever)


def make_router(tools, *replies, publish_aliases=True):
    llm = FakeSimpleLLM(*replies)
    repairer = ArgumentRepairer(llm) if replies else None
    return ToolRouter(tools, repairer=repairer, publish_aliases=publish_aliases), llm


class TestToolRegistry:
    def test_tools_published_with_aliases(self, sales_tools):
        router, _ = make_router(sales_tools)

        assert router.tool_names == [
            "getSalesAnalytics",
            "get_sales_analytics",
            "getTopAggregates",
            "get_top_aggregates",
            "getInvoiceDetails",
            "get_invoice_details",
            "getSalesMetaData",
            "get_sales_meta_data",
            "getInformation",
            "get_information",
        ]
        assert router.get_tool("get_invoice_details") is router.get_tool("getInvoiceDetails")

    def test_aliases_can_be_disabled(self, sales_tools):
        router, _ = make_router(sales_tools, publish_aliases=False)
        assert len(router.tool_names) == 5

    def test_unknown_tool(self, sales_tools):
        router, _ = make_router(sales_tools)
        with pytest.raises(ToolNotFoundException):
            router.get_tool("deleteEverything")

    def test_langchain_tools(self, sales_tools):
        router, _ = make_router(sales_tools, publish_aliases=False)
        tools = router.langchain_tools()

        assert [tool.name for tool in tools] == [tool.name for tool in sales_tools]
        assert tools[0].description.startswith("Run sales analytics")


class TestParameterShape:
    def test_skeleton_of_sales_analytics(self, sales_tools):
        skeleton = sales_tools[0].parameter_shape().example_value()

        assert skeleton["operation"] == ["FILTER", "SUMMARY", "ANALYTICS", "TREND"]
        assert skeleton["analyticsType"] == ["TOTAL_SALES", "AVERAGE_SALES", "SALES_COUNT"]
        assert skeleton["startDate"] == "string"
        assert skeleton["limit"] == 0
        assert skeleton["sortOrder"] == ["ASC", "DESC"]

    def test_nested_schema(self):
        shape = ParameterShape.from_json_schema(
            {
                "type": "object",
                "properties": {
                    "tags": {"type": "array", "items": {"type": "string"}},
                    "flag": {"type": ["boolean", "null"]},
                    "mode": {"const": "fast"},
                    "ref": {"$ref": "#/$defs/Inner"},
                },
                "$defs": {
                    "Inner": {"type": "object", "properties": {"n": {"type": "number"}}}
                },
            }
        )
        assert shape.kind == ParameterKind.OBJECT
        assert shape.example_value() == {
            "tags": ["string"],
            "flag": False,
            "mode": ["fast"],
            "ref": {"n": 0},
        }

    def test_unwrap_value_wrappers(self):
        assert unwrap_value_wrappers(
            {"a": {"value": 1}, "b": [{"value": {"value": "x"}}], "c": {"value": 2, "d": 3}}
        ) == {"a": 1, "b": ["x"], "c": {"value": 2, "d": 3}}

    def test_extract_json_object(self):
        assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}
        assert extract_json_object('Here you go: {"a": {"b": 2}} done') == {"a": {"b": 2}}
        with pytest.raises(ValueError):
            extract_json_object("no json here")


class TestToolRouting:
    """Dispatching calls, repairing arguments at most once."""

    @pytest.mark.asyncio
    async def test_dispatch_valid_call(self, sales_tools):
        router, _ = make_router(sales_tools)
        result = await router.dispatch("getSalesMetaData", {"queryType": "paymentMethods"})
        assert result == "Available payment methods: Cash, Credit Card"

    @pytest.mark.asyncio
    async def test_dispatch_alias_with_json_string(self, sales_tools):
        router, _ = make_router(sales_tools)
        result = await router.dispatch("get_invoice_details", '{"invoice": "J100"}')
        assert result.endswith("Overall Invoice Total: RM 25.00")

    @pytest.mark.asyncio
    async def test_dispatch_unknown_tool(self, sales_tools):
        router, _ = make_router(sales_tools, publish_aliases=False)
        result = await router.dispatch("getWeather", {})
        assert result == (
            "The tool 'getWeather' is not available. Available tools: "
            "getSalesAnalytics, getTopAggregates, getInvoiceDetails, "
            "getSalesMetaData, getInformation."
        )

    @pytest.mark.asyncio
    async def test_invalid_arguments_are_repaired(self, sales_tools):
        router, llm = make_router(
            sales_tools,
            '```json\n{"operation": {"value": "ANALYTICS"}, "analyticsType": "TOTAL_SALES"}\n```',
        )

        result = await router.dispatch("getSalesAnalytics", {"operation": "TOTAL"})

        assert result == "Total sales: RM 149.00"
        assert len(llm.calls) == 1
        prompt = llm.calls[0][1].content
        assert "Tool: getSalesAnalytics" in prompt
        assert '"FILTER"' in prompt

    @pytest.mark.asyncio
    async def test_missing_conditional_field_is_repaired(self, sales_tools):
        router, llm = make_router(
            sales_tools, '{"operation": "TREND", "groupBy": "MONTH", "limit": 1}'
        )

        result = await router.dispatch("getSalesAnalytics", {"operation": "TREND"})

        assert result == "Period: 2024-01, Total Sales: RM 49.00, Sales Count: 3"
        assert "groupBy" in llm.calls[0][1].content

    @pytest.mark.asyncio
    async def test_repair_is_attempted_once(self, sales_tools):
        router, llm = make_router(sales_tools, '{"operation": "STILL_WRONG"}', '{}')

        with pytest.raises(ToolArgumentException) as exc_info:
            await router.invoke("getSalesAnalytics", {"operation": "WRONG"})

        assert exc_info.value.repaired is True
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_repair_reply_without_json(self, sales_tools):
        router, _ = make_router(sales_tools, "I cannot help with that")

        with pytest.raises(ToolArgumentException) as exc_info:
            await router.invoke("getInvoiceDetails", {})
        assert exc_info.value.repaired is True

    @pytest.mark.asyncio
    async def test_repair_model_failure(self, sales_tools):
        router, _ = make_router(sales_tools, RuntimeError("model offline"))

        result = await router.dispatch("getInvoiceDetails", {})

        assert result.startswith("The request to getInvoiceDetails could not be understood:")

    @pytest.mark.asyncio
    async def test_without_repairer(self, sales_tools):
        router, _ = make_router(sales_tools)

        with pytest.raises(ToolArgumentException) as exc_info:
            await router.invoke("getInvoiceDetails", "{not json")
        assert exc_info.value.repaired is False

    @pytest.mark.asyncio
    async def test_handler_failure(self):
        async def broken(args):
            raise RuntimeError("boom")

        tool = ToolDefinition(
            name="getInformation",
            description="Search",
            args_model=InformationRequest,
            handler=broken,
        )
        router, _ = make_router([tool])

        result = await router.dispatch("getInformation", {"query": "widgets"})

        assert result == (
            "Something went wrong while running getInformation. Please try again later."
        )
