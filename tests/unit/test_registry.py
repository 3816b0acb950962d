"""
Unit tests for the tool registry and the planning schema it produces.
"""

import pytest
from pydantic import BaseModel
from services.tools.base import FunctionTool
from services.tools.registry import ToolRegistry, build_default_registry
from shared.exceptions import ToolExecutionError, ToolNotFoundError


def tool_enum(schema):
    return schema["properties"]["nodes"]["items"]["properties"]["action"]["properties"]["tools"]["items"]["enum"]


def make_tool(name, func=None):
    return FunctionTool(name=name, description=f"{name} tool", func=func or (lambda context, params: name))


def test_planning_schema_tracks_registrations():
    """Schema built after a registration lists the new tool; earlier schemas are unaffected"""
    registry = ToolRegistry()
    registry.register(make_tool("search"))

    before = registry.build_planning_schema()
    registry.register(make_tool("screenshot"))
    after = registry.build_planning_schema()

    assert tool_enum(before) == ["search"]
    assert tool_enum(after) == ["search", "screenshot"]


def test_planning_schema_drops_unregistered_tool():
    registry = ToolRegistry()
    registry.register(make_tool("search"))
    registry.register(make_tool("screenshot"))

    assert registry.unregister("search") is True
    assert registry.unregister("search") is False
    assert tool_enum(registry.build_planning_schema()) == ["screenshot"]


def test_register_same_name_replaces_tool():
    """Last registration wins"""
    registry = ToolRegistry()
    registry.register(make_tool("search", lambda context, params: "first"))
    registry.register(make_tool("search", lambda context, params: "second"))

    assert registry.tool_names() == ["search"]
    assert registry.get("search").execute(None, {}) == "second"


def test_get_unknown_tool():
    registry = ToolRegistry()

    with pytest.raises(ToolNotFoundError, match="Tool with name missing not found") as exc_info:
        registry.get("missing")

    assert exc_info.value.tool_name == "missing"


def test_has_all():
    registry = ToolRegistry()
    registry.register(make_tool("search"))
    registry.register(make_tool("screenshot"))

    assert registry.has_all(["search", "screenshot"])
    assert registry.has_all([])
    assert not registry.has_all(["search", "click"])


def test_list_definitions():
    registry = ToolRegistry()
    registry.register(make_tool("search"))

    definitions = registry.list_definitions()

    assert len(definitions) == 1
    assert definitions[0].name == "search"
    assert definitions[0].description == "search tool"


def test_default_registry_excludes_write_context():
    """write_context is supplied by the engine, not offered to the planner"""
    registry = build_default_registry()

    assert "http_request" in registry.tool_names()
    assert "write_context" not in tool_enum(registry.build_planning_schema())


def test_function_tool_validates_params():
    """Params are checked against the tool's model before the call"""

    class SearchParams(BaseModel):
        query: str

    tool = FunctionTool(
        name="search",
        description="search the web",
        func=lambda context, params: params["query"].upper(),
        params_model=SearchParams,
    )

    assert tool.input_schema["properties"]["query"]["type"] == "string"
    assert tool.execute(None, {"query": "cats"}) == "CATS"

    with pytest.raises(ToolExecutionError) as exc_info:
        tool.execute(None, {})

    assert exc_info.value.task_error.error_type == "INVALID_TOOL_INPUT"
    assert exc_info.value.task_error.is_retryable is False
