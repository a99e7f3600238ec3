"""Single-call generation: the model answers with one JSON project."""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from sandpit.constants import ALLOWED_PACKAGES, FALLBACK_TITLE
from sandpit.errors import GenerationError
from sandpit.llm import LLM
from sandpit.materializer.pipeline import MaterializedProject, Materializer

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*\})\s*```", re.DOTALL)


class CodeGenResponse(BaseModel):
    """Structured code-generation response."""

    projectTitle: str = Field("", description="Short project title")
    explanation: str = Field("", description="One paragraph on structure and purpose")
    files: dict[str, Any] = Field(default_factory=dict, description="Path -> {code} or string")
    generatedFiles: list[str] = Field(default_factory=list)


@dataclass
class OneShotResult:
    title: str
    explanation: str
    project: MaterializedProject


def build_prompt(request: str) -> str:
    packages = ", ".join(sorted(ALLOWED_PACKAGES))
    return f"""{request}

Generate a React project for the request above. Split the UI into components
under /components using the .js extension. Style with Tailwind CSS classes.
Only these packages are available, import them only when needed: {packages}.

Return only JSON with this schema:
{{
  "projectTitle": "",
  "explanation": "",
  "files": {{
    "/App.js": {{"code": ""}}
  }},
  "generatedFiles": []
}}

"files" must contain every created file with its full code, and
"generatedFiles" must list every filename. Keep the explanation to one
paragraph covering the project's structure, purpose and functionality."""


def parse_response(text: str) -> CodeGenResponse:
    """Parse the model's JSON answer, tolerating code fences and chatter.

    Args:
        text: Raw model output

    Returns:
        CodeGenResponse

    Raises:
        GenerationError: If no valid JSON object can be extracted
    """
    candidate = text.strip()
    match = FENCE_RE.search(candidate)
    if match:
        candidate = match.group(1)
    else:
        start, end = candidate.find("{"), candidate.rfind("}")
        if start != -1 and end > start:
            candidate = candidate[start:end + 1]

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise GenerationError(f"Model did not return valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise GenerationError("Model returned JSON that is not an object")

    try:
        return CodeGenResponse.model_validate(data)
    except ValidationError as e:
        raise GenerationError(f"Response does not match the schema: {e}") from e


class OneShotGenerator:
    """Generates a whole project with a single model call."""

    def __init__(self, llm: LLM, extra_packages: Optional[dict[str, str]] = None):
        self.llm = llm
        self.materializer = Materializer(extra_packages)

    def generate(self, request: str) -> OneShotResult:
        """Ask for a project and materialize it.

        Args:
            request: User request

        Returns:
            OneShotResult

        Raises:
            GenerationError: If the response is unusable or has no files
        """
        response = self.llm.complete(
            [{"role": "user", "content": build_prompt(request)}],
            temperature=1.0,
        )
        parsed = parse_response(response.get("content") or "")

        if not parsed.files:
            raise GenerationError("Response contained no files")

        missing = [f for f in parsed.generatedFiles if f not in parsed.files]
        if missing:
            logger.warning("Listed but not generated: %s", ", ".join(missing))

        project = self.materializer.materialize(parsed.files)
        return OneShotResult(
            title=parsed.projectTitle.strip() or FALLBACK_TITLE,
            explanation=parsed.explanation.strip(),
            project=project,
        )
