"""Prompt templates for AI documentation generation."""

import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


class TemplateType(str, Enum):
    DEFAULT = "default"
    SECURITY = "security"
    PERFORMANCE = "performance"
    ARCHITECTURE = "architecture"


class PromptTemplates:
    """Documentation prompts for analyzed projects."""

    @staticmethod
    def get_template(template_type: TemplateType) -> str:
        templates = {
            TemplateType.DEFAULT: PromptTemplates._get_default_template(),
            TemplateType.SECURITY: PromptTemplates._get_security_template(),
            TemplateType.PERFORMANCE: PromptTemplates._get_performance_template(),
            TemplateType.ARCHITECTURE: PromptTemplates._get_architecture_template(),
        }
        return templates[template_type]

    @staticmethod
    def _get_default_template() -> str:
        """DEFAULT: MDX API reference"""
        return """You are a technical writer who documents web APIs. Using the project analysis
below, write API documentation in MDX (Markdown plus JSX) suitable for Nextra,
Docusaurus or a similar documentation site.

Include YAML frontmatter with a title, a version and framework: "{{framework}}".

Sections, in this order:
1. Overview of what the API does
2. Framework information and the conventions it implies
3. Authentication, including required headers and guards
4. Endpoints: method and full path in a code block, then parameters and
   request bodies as tables with example JSON
5. Responses with status codes and example bodies
6. Examples in cURL and JavaScript
7. Error handling and troubleshooting notes
8. Data models from the types below

Use a consistent heading hierarchy, fenced code blocks with language tags and
backticks for inline identifiers. Do not invent endpoints that are not listed.

Project analysis:
- Framework: {{framework}}
- Routes: {{totalRoutes}}
- Controllers: {{totalControllers}}
- Services: {{totalServices}}
- Types: {{totalTypes}}

Routes: {{routes}}
Controllers: {{controllers}}
Services: {{services}}
Data models: {{types}}
"""

    @staticmethod
    def _get_security_template() -> str:
        """SECURITY: threat-oriented review"""
        return """Review the security of this {{framework}} project from its API surface.

{{projectData}}

Cover authentication and authorization, input validation, data protection,
common vulnerabilities with mitigations and anything specific to {{framework}}.
Answer in Markdown.
"""

    @staticmethod
    def _get_performance_template() -> str:
        """PERFORMANCE: scaling and latency review"""
        return """Analyze the performance characteristics of this {{framework}} project.

{{projectData}}

Cover database access patterns, caching opportunities, response payloads,
memory usage, scalability and {{framework}}-specific optimizations.
Answer in Markdown.
"""

    @staticmethod
    def _get_architecture_template() -> str:
        """ARCHITECTURE: design and module structure"""
        return """Describe the architecture of this {{framework}} project.

{{projectData}}

Cover the design patterns in use, module organization, dependency injection,
code structure and how it compares with {{framework}} conventions.
Answer in Markdown.
"""


def get_template(name: Optional[str] = None, custom_file: Optional[str] = None) -> str:
    """Template text by name, or the contents of a custom template file."""
    if custom_file:
        path = Path(custom_file)
        logger.debug(f"Using custom prompt template {path}")
        return path.read_text(encoding="utf-8")

    try:
        template_type = TemplateType(name or TemplateType.DEFAULT.value)
    except ValueError:
        logger.warning(f"Unknown template '{name}', using default")
        template_type = TemplateType.DEFAULT
    return PromptTemplates.get_template(template_type)


def build_prompt(template: str, data: Dict[str, Any]) -> str:
    """Fill {{placeholders}} from a serialized analysis."""
    metadata = data.get("metadata") or {}

    def dump(value: Any) -> str:
        return json.dumps(value, indent=2, ensure_ascii=False)

    values = {
        "framework": str(data.get("framework") or "unknown"),
        "routes": dump(data.get("routes") or []),
        "controllers": dump(data.get("controllers") or []),
        "services": dump(data.get("services") or []),
        "types": dump(data.get("types") or []),
        "projectData": dump(data),
    }
    for key in ("totalFiles", "totalControllers", "totalServices", "totalMethods", "totalTypes", "totalRoutes"):
        values[key] = str(metadata.get(key) or 0)

    # Unknown placeholders are left untouched
    return PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template)
