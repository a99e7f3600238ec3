"""Prompts for the coding agent and the post-run helper calls."""

from typing import Optional

from sandpit.constants import ALLOWED_PACKAGES, SUMMARY_TAG

RESPONSE_PROMPT = """You are the final agent in a multi-agent system.
Your job is to generate a short, user-friendly message explaining what was just built, based on the <task_summary> provided by the other agents.
The application is a custom React app tailored to the user's request.
Reply in a casual tone, as if you're wrapping up the process for the user. No need to mention the <task_summary> tag.
Your message should be 1 to 3 sentences, describing what the app does or what was changed, as if you're saying "Here's what I built for you."
Do not add code, tags, or metadata. Only return the plain text response."""

TITLE_PROMPT = """You are an assistant that generates a short, descriptive title for a code fragment based on its <task_summary>.
The title should be:
  - Relevant to what was built or changed
  - Max 3 words
  - Written in title case (e.g., "Landing Page", "Chat Widget")
  - No punctuation, quotes, or prefixes

Only return the raw title."""

CONTINUE_PROMPT = (
    "Continue the task. When you are done, reply with "
    "<task_summary>...</task_summary> describing what you built."
)


class SystemPromptBuilder:
    """Builds the coding agent's system prompt."""

    def __init__(self, existing_files: Optional[list[str]] = None):
        """Initialize system prompt builder.

        Args:
            existing_files: Paths already present from a previous run
        """
        self.existing_files = existing_files or []

    def build(self) -> str:
        """Build the full system prompt.

        Returns:
            Single string system prompt
        """
        parts = [
            self._build_core_identity(),
            self._build_environment(),
            self._build_guidelines(),
            self._build_completion(),
        ]

        if self.existing_files:
            parts.append(self._build_existing_files())

        return "\n\n".join(parts)

    def _build_core_identity(self) -> str:
        return """# Role

You are a senior React developer working in a sandboxed environment.
You build complete, production-ready React applications from a user's description,
using the tools available to you to write files and run commands."""

    def _build_environment(self) -> str:
        packages = "\n".join(f"- {name}" for name in sorted(ALLOWED_PACKAGES))
        return f"""# Environment

- React 18 with Tailwind CSS (loaded from a CDN, use utility classes only)
- The preview supports these additional packages and nothing else:
{packages}
- Do not add a package.json; dependencies are detected from your imports."""

    def _build_guidelines(self) -> str:
        return """# File Structure
- Main app: src/App.js, exporting the root component as default
- Components: src/components/ComponentName.js, one default export each
- Use the .js extension for all React files
- Every relative import must point at a file you create

# Tools
- createOrUpdateFiles: write complete files, never partial snippets
- readFiles: inspect files before modifying an existing app
- terminal: run shell commands; a failure is reported back to you, read it and adapt

# Quality
- Use React hooks appropriately with proper state management
- Responsive layouts, hover states and transitions
- Handle empty and loading states"""

    def _build_completion(self) -> str:
        return f"""# Finishing

When the app is complete, reply with a brief summary in exactly this format:
{SUMMARY_TAG}
Brief description of what was built or modified
</task_summary>

Do not emit the summary before all files are written."""

    def _build_existing_files(self) -> str:
        listing = "\n".join(f"- {path}" for path in self.existing_files)
        return f"""# Existing Project

The project already contains these files from a previous request.
Use readFiles before changing them and keep what the user did not ask to change.
{listing}"""
