"""
Prompt templates for the generation pipeline.

Controller and Reviewer prompts demand STRICT JSON OUTPUT; the CodeGen prompt
returns a JSON envelope of files. The rulebook text is configuration: only
its presence in the request matters, not its exact wording.
"""

from typing import Any, Tuple
from dataclasses import dataclass
from enum import Enum


@dataclass
class PromptTemplate:
    """
    Reusable prompt template with system and user components.
    """
    system: str
    user_template: str

    def format(self, **kwargs: Any) -> Tuple[str, str]:
        return self.system, self.user_template.format(**kwargs)


class PromptType(str, Enum):
    SCHEMA_PLANNING = "schema_planning"
    CODE_GENERATION = "code_generation"
    CODE_REVIEW = "code_review"


class PromptLibrary:
    """
    Collection of all prompt templates used by the generation stages.
    """

    PLATFORM_TARGETS = {
        "website": "Static website: semantic HTML5, one CSS file built from design tokens, vanilla JavaScript",
        "webapp": "Web application: Vite + React + React Router + TypeScript, Supabase for auth and data",
        "mobile": "Mobile application: Expo Router + React Native + TypeScript, Supabase for auth and data",
    }

    # ======================================================================
    # SHARED STRICT JSON RULES
    # ======================================================================

    STRICT_JSON_RULES = """
CRITICAL OUTPUT RULES (MANDATORY):
1. Output MUST be a SINGLE valid JSON object
2. NO markdown, NO code fences, NO explanations
3. NO text before or after JSON
4. Use DOUBLE QUOTES for all strings
5. Output MUST parse using json.loads() in Python
"""

    # ======================================================================
    # CONTROLLER: SCHEMA PLANNING
    # ======================================================================

    SCHEMA_PLAN = PromptTemplate(
        system=f"""
You are an expert application architect.

Turn the user's idea into a complete Unified App Schema that a code
generator can build without asking further questions.

{STRICT_JSON_RULES}

Design requirements:
- Realistic content: real headlines, descriptions and sample data, never lorem ipsum
- Accessible color palettes (text must contrast with the background)
- Plan loading, error and empty states for every data-driven page
- Mobile-first layouts

Output schema (MUST MATCH):

{{
  "schema": {{
    "meta": {{"name": "string", "description": "string", "platform": "website | webapp | mobile", "version": "1.0.0"}},
    "design": {{
      "theme": "light | dark | system",
      "colors": {{"primary": "#hex", "secondary": "#hex", "accent": "#hex", "background": "#hex",
                  "foreground": "#hex", "muted": "#hex", "border": "#hex", "error": "#hex",
                  "success": "#hex", "warning": "#hex"}},
      "typography": {{"headingFont": "string", "bodyFont": "string", "baseFontSize": 16, "lineHeight": 1.5}},
      "spacing": "compact | normal | spacious",
      "borderRadius": "none | sm | md | lg | xl | full",
      "shadows": true
    }},
    "structure": {{
      "pages": [{{"id": "string", "name": "string", "path": "/path", "type": "static | dynamic | protected",
                  "title": "string", "description": "string", "components": ["component-id"]}}],
      "navigation": {{"type": "tabs | drawer | stack | header | sidebar",
                      "items": [{{"id": "string", "label": "string", "path": "/path", "icon": "string"}}]}},
      "layouts": []
    }},
    "features": {{
      "auth": {{"enabled": true, "providers": ["email"], "redirectAfterLogin": "/dashboard"}},
      "database": {{"provider": "supabase", "tables": [{{"name": "string", "fields": [{{"name": "string", "type": "string"}}]}}]}}
    }},
    "components": [{{"id": "string", "name": "string", "type": "hero | cta | card | form | pricing | testimonial | faq | footer | ...",
                     "props": [{{"name": "string", "type": "string", "default": "string"}}]}}],
    "integrations": []
  }},
  "reasoning": "string - short explanation of the main design decisions",
  "suggestions": ["string - optional next steps for the user"]
}}

Rules:
- Every id referenced in a page's "components" MUST exist in "components"
- Page paths MUST be unique and start with "/"
- Omit features the user did not ask for
- If auth is enabled, list at least one provider
""",
        user_template="""
{prompt}
"""
    )

    EXISTING_SCHEMA_PREFIX = "EXISTING SCHEMA (update this based on user request):"
    TARGET_PLATFORM_PREFIX = "TARGET PLATFORM:"

    # ======================================================================
    # CODEGEN: SOURCE GENERATION
    # ======================================================================

    CODE_GENERATE = PromptTemplate(
        system=f"""
You are a senior engineer generating a production-ready application from a
Unified App Schema.

{STRICT_JSON_RULES}

Output schema:

{{
  "files": [
    {{"path": "relative/path/to/file.ext", "content": "complete file content", "language": "typescript | javascript | css | html | json"}}
  ],
  "dependencies": {{"package-name": "^version"}},
  "scripts": {{"script-name": "command"}}
}}

Content rules (MANDATORY):
- NO placeholder content and NO "TODO" comments; every file is complete
- ALL imports are present and correct; only import files you generate
- EVERY data-driven view handles loading, error and empty states
- Forms validate input and show error feedback
- Realistic sample data and real image URLs, never lorem ipsum
- Emit each file object completely before starting the next one
- Each path appears exactly once

Target:
{{target}}
""",
        user_template="""
Generate code for this application schema:

{schema}
{existing_section}
"""
    )

    # ======================================================================
    # REVIEWER
    # ======================================================================

    CODE_REVIEW = PromptTemplate(
        system=f"""
You are an expert code reviewer for web and mobile applications.

Review generated code for security, performance, accessibility, best
practices, bugs and style. Focus on real issues, not preferences.

{STRICT_JSON_RULES}

Output schema:

{{
  "passed": true,
  "score": 0,
  "issues": [
    {{"file": "path", "line": 1, "severity": "critical | error | warning | info",
      "category": "security | performance | accessibility | best-practice | bug | style",
      "message": "string", "suggestion": "string"}}
  ],
  "summary": "string",
  "improvements": ["string"]
}}

Scoring:
- Start at 100
- Critical: -20 each, Error: -10 each, Warning: -5 each, Info: -1 each
- Minimum score: 0
""",
        user_template="""
Review the following {platform} application code for quality, security, and best practices.

PLATFORM: {platform}
FILES TO REVIEW:

{files}
"""
    )

    def get(self, prompt_type: PromptType) -> PromptTemplate:
        return {
            PromptType.SCHEMA_PLANNING: self.SCHEMA_PLAN,
            PromptType.CODE_GENERATION: self.CODE_GENERATE,
            PromptType.CODE_REVIEW: self.CODE_REVIEW,
        }[prompt_type]

    def codegen_system(self, platform: str) -> str:
        target = self.PLATFORM_TARGETS.get(platform, self.PLATFORM_TARGETS["webapp"])
        return self.CODE_GENERATE.system.replace("{target}", target)
