from pathlib import Path

import pytest

from agent.exceptions import PromptTemplateError
from prompts.template_engine import PromptTemplateEngine


def test_render_substitutes_and_includes(tmp_path: Path):
    profile = tmp_path / "default"
    profile.mkdir()
    (profile / "main.md").write_text("You are {{agent_name}}.\n{{include:tools.md}}\n")
    (profile / "tools.md").write_text("Tools:\n{{tool_descriptions}}")

    engine = PromptTemplateEngine(str(tmp_path))
    text = engine.render("main.md", {
        "agent_name": "Ecommerce Agent",
        "tool_descriptions": "- get_products: List products",
    })

    assert text == "You are Ecommerce Agent.\nTools:\n- get_products: List products"


def test_missing_profile_or_template(tmp_path: Path):
    with pytest.raises(PromptTemplateError):
        PromptTemplateEngine(str(tmp_path), profile="nope")

    (tmp_path / "default").mkdir()
    engine = PromptTemplateEngine(str(tmp_path))
    with pytest.raises(PromptTemplateError):
        engine.render("missing.md", {})


def test_circular_include(tmp_path: Path):
    profile = tmp_path / "default"
    profile.mkdir()
    (profile / "loop.md").write_text("{{include:loop.md}}")

    with pytest.raises(PromptTemplateError):
        PromptTemplateEngine(str(tmp_path)).render("loop.md", {})


def test_shipped_system_prompt_pulls_in_tool_section():
    prompts_dir = Path(__file__).resolve().parent.parent / "prompts"
    text = PromptTemplateEngine(str(prompts_dir)).render(
        "agent.system.main.md",
        {"tool_descriptions": "- get_products: List products"},
    )

    assert "[Missing template" not in text
    assert "{{" not in text
    assert "Available tools:\n- get_products: List products" in text
