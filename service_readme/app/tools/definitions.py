"""
Tool names, descriptions and JSON input schemas.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, Field


GET_README_TOOL = "get_readme_from_nuget"
GET_INFO_TOOL = "get_package_info_from_nuget"
SEARCH_TOOL = "search_packages_from_nuget"


class ToolDefinition(BaseModel):
    name: str
    description: str
    input_schema: Dict[str, Any] = Field(serialization_alias="inputSchema")


class ToolCallRequest(BaseModel):
    """Body of ``POST /tools/call``."""
    name: str
    arguments: Any = None


TOOL_DEFINITIONS: List[ToolDefinition] = [
    ToolDefinition(
        name=GET_README_TOOL,
        description="Get package README and usage examples from NuGet registry",
        input_schema={
            "type": "object",
            "properties": {
                "package_name": {
                    "type": "string",
                    "description": "The name of the NuGet package",
                },
                "version": {
                    "type": "string",
                    "description": 'The version of the package (default: "latest")',
                    "default": "latest",
                },
                "include_examples": {
                    "type": "boolean",
                    "description": "Whether to include usage examples (default: true)",
                    "default": True,
                },
            },
            "required": ["package_name"],
        },
    ),
    ToolDefinition(
        name=GET_INFO_TOOL,
        description="Get package basic information and dependencies from NuGet registry",
        input_schema={
            "type": "object",
            "properties": {
                "package_name": {
                    "type": "string",
                    "description": "The name of the NuGet package",
                },
                "include_dependencies": {
                    "type": "boolean",
                    "description": "Whether to include dependencies (default: true)",
                    "default": True,
                },
                "include_dev_dependencies": {
                    "type": "boolean",
                    "description": "Whether to include development dependencies (default: false)",
                    "default": False,
                },
            },
            "required": ["package_name"],
        },
    ),
    ToolDefinition(
        name=SEARCH_TOOL,
        description="Search for packages in NuGet registry",
        input_schema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query",
                },
                "limit": {
                    "type": "number",
                    "description": "Maximum number of results to return (default: 20)",
                    "default": 20,
                    "minimum": 1,
                    "maximum": 250,
                },
                "quality": {
                    "type": "number",
                    "description": "Minimum quality score (0-1)",
                    "minimum": 0,
                    "maximum": 1,
                },
                "popularity": {
                    "type": "number",
                    "description": "Minimum popularity score (0-1)",
                    "minimum": 0,
                    "maximum": 1,
                },
            },
            "required": ["query"],
        },
    ),
]
