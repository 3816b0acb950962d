"""
Unit tests for template resolution.
"""

import pytest
from services.engine.template import TemplateResolver
from shared.exceptions import TemplateResolutionError


def test_resolve_simple_template():
    """Basic template resolution works"""
    resolver = TemplateResolver()

    config = {
        "input": "{{ nodes.node1.result }}"
    }

    resolved = resolver.resolve(config, {"nodes": {"node1": {"result": 42}}})

    assert resolved["input"] == 42


def test_resolve_multiple_templates():
    """Multiple templates in same config resolve correctly"""
    resolver = TemplateResolver()

    config = {
        "a": "{{ first }}",
        "b": "{{ second }}"
    }

    resolved = resolver.resolve(config, {"first": 10, "second": 20})

    assert resolved["a"] == 10
    assert resolved["b"] == 20


def test_resolve_template_not_found():
    """Should error if template references a missing value"""
    resolver = TemplateResolver()

    config = {
        "input": "{{ nodes.node1.result }}"
    }

    with pytest.raises(TemplateResolutionError, match="Template resolution failed"):
        resolver.resolve(config, {"nodes": {}})


def test_resolve_no_templates():
    """Config without templates passes through unchanged"""
    resolver = TemplateResolver()

    config = {
        "value": 42,
        "name": "test"
    }

    resolved = resolver.resolve(config, {})

    assert resolved == config


def test_resolve_nested_config():
    """Templates in nested objects and lists work"""
    resolver = TemplateResolver()

    config = {
        "nested": {
            "value": "{{ city }}"
        },
        "items": ["{{ city }}", "static"]
    }

    resolved = resolver.resolve(config, {"city": "Paris"})

    assert resolved["nested"]["value"] == "Paris"
    assert resolved["items"] == ["Paris", "static"]


def test_resolve_json_value():
    """Rendered JSON is decoded back into structures"""
    resolver = TemplateResolver()

    resolved = resolver.resolve("{{ items | tojson }}", {"items": [1, 2]})

    assert resolved == [1, 2]


def test_render_text_keeps_strings():
    """render_text never coerces the result"""
    resolver = TemplateResolver()

    assert resolver.render_text("Total: {{ count }}", {"count": 3}) == "Total: 3"
    assert resolver.render_text("{{ count }}", {"count": 3}) == "3"


def test_sandbox_blocks_internals():
    resolver = TemplateResolver()

    with pytest.raises(Exception):
        resolver.resolve("{{ value.__class__.__mro__ }}", {"value": "x"})
