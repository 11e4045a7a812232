"""Tests for the résumé tool registry."""

import json

import pytest
from assistant.common.errors import UnknownTool
from assistant.common.schemas import ResumeData
from assistant.retriever.tools import EMPTY_SCHEMA, ToolName, ToolRegistry

DATASET = ResumeData(
    basic_info={"name": "Ada", "email": "ada@example.com"},
    experience=[{"company": "Acme", "position": "Engineer"}],
    education=[{"school": "State University", "degree": "BSc"}],
    certifications=[{"title": "Cloud Practitioner"}],
    projects=[{"title": "Image Coloration", "repo_name": "img-color", "tech": ["PyTorch"]}],
    skills=[{"category": "Languages", "items": ["Python", "Go"]}],
    socials=[{"name": "GitHub", "url": "https://github.com/ada"}],
)


@pytest.fixture
def registry():
    return ToolRegistry(lambda: DATASET, owner_name="Ada")


class TestDeclarations:
    def test_closed_tool_set(self, registry):
        names = [d["name"] for d in registry.declarations()]
        assert names == [t.value for t in ToolName]
        assert len(names) == 6

    def test_zero_argument_schemas(self, registry):
        for declaration in registry.declarations():
            assert declaration["parameters"] == EMPTY_SCHEMA
            assert "Ada" in declaration["description"]


class TestExecute:
    def test_section_dump(self, registry):
        result = registry.execute("get_experience")
        assert json.loads(result) == [{"company": "Acme", "position": "Engineer"}]
        assert result.startswith("[\n  {")

    def test_projects_keep_extra_fields(self, registry):
        projects = json.loads(registry.execute("get_projects"))
        assert projects[0]["tech"] == ["PyTorch"]

    def test_skills(self, registry):
        assert json.loads(registry.execute("get_skills"))[0]["category"] == "Languages"

    def test_contact_info(self, registry):
        contact = json.loads(registry.execute("get_contact_info"))
        assert contact["basicInfo"]["email"] == "ada@example.com"
        assert contact["socials"][0]["name"] == "GitHub"

    def test_arguments_ignored(self, registry):
        assert registry.execute("get_education", {"unexpected": 1}) == registry.execute("get_education")

    def test_unknown_tool(self, registry):
        assert registry.execute("get_salary") == 'Tool "get_salary" not available.'

    def test_handler_for_unknown_raises(self, registry):
        with pytest.raises(UnknownTool) as exc:
            registry.handler_for("get_salary")
        assert exc.value.name == "get_salary"

    def test_missing_dataset_gives_empty_sections(self):
        registry = ToolRegistry(lambda: None)
        assert registry.execute("get_certifications") == "[]"
        assert json.loads(registry.execute("get_contact_info")) == {"socials": [], "basicInfo": {}}

    def test_handler_failure_returned_as_text(self):
        def broken():
            raise RuntimeError("dataset gone")

        registry = ToolRegistry(broken)
        assert registry.execute("get_skills") == "Error executing tool: dataset gone"
