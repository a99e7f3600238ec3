"""Constants and default values for Sandpit."""

import re

# Default model configuration
DEFAULT_MODEL = "anthropic:claude-sonnet-4-5"

# Orchestration defaults
DEFAULT_MAX_ITERATIONS = 15
DEFAULT_MAX_TOOL_ROUNDS = 10
DEFAULT_MODEL_RETRIES = 2
DEFAULT_TOOL_WORKERS = 4
HISTORY_MESSAGE_LIMIT = 5

# Sandbox defaults
DEFAULT_SANDBOX_PROVIDER = "local"
DEFAULT_SANDBOX_TIMEOUT = 45  # seconds
DEFAULT_E2B_TEMPLATE = ""
DEFAULT_PREVIEW_PORT = 3000

# Completion marker the agent emits when it is done
SUMMARY_TAG = "<task_summary>"

# Fallbacks for the post-run title/response calls
FALLBACK_TITLE = "Fragment"
FALLBACK_RESPONSE = "Here's what I built for you."
ERROR_MESSAGE = "Something went wrong. Please try again."

# Message roles and types in the record store
ROLE_USER = "USER"
ROLE_ASSISTANT = "ASSISTANT"
TYPE_PROMPT = "PROMPT"
TYPE_RESULT = "RESULT"
TYPE_ERROR = "ERROR"

# Dangerous command patterns (for local sandbox safety checks)
DANGEROUS_PATTERNS = [
    (re.compile(r'\bsudo\b'), "Use of sudo detected"),
    (re.compile(r'\brm\s+-rf\s+/(\s|$)'), "Recursive delete of root directory"),
    (re.compile(r':\(\)\{.*\|.*\&.*\}'), "Fork bomb pattern detected"),
    (re.compile(r'curl.*\|.*sh'), "Piping curl to shell"),
    (re.compile(r'wget.*\|.*sh'), "Piping wget to shell"),
    (re.compile(r'\bchmod\s+777'), "chmod 777 detected"),
    (re.compile(r'>\s*/dev/sd[a-z]'), "Writing to block device"),
    (re.compile(r'\bdd\s+.*of=/dev/'), "dd to block device"),
]

# Preview runtime layout
SOURCE_ROOT = "/src"
APP_PATH = "/src/App.js"
ENTRY_PATH = "/src/index.js"
STYLESHEET_PATH = "/src/index.css"
HTML_PATH = "/public/index.html"
MANIFEST_PATH = "/package.json"
TAILWIND_CDN = "https://cdn.tailwindcss.com"

# Files that stay at the project root when generated
ROOT_FILENAMES = {
    "package.json",
    "tailwind.config.js",
    "postcss.config.js",
    "README.md",
    "index.html",
}

# Extensions treated as importable source modules
SOURCE_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx")
COMPONENT_EXTENSIONS = (".js", ".jsx", ".tsx")

# Framework runtime, always present in the manifest
BASE_DEPENDENCIES = {
    "react": "^18.2.0",
    "react-dom": "^18.2.0",
}

# Packages the preview sandbox supports, with pinned ranges
ALLOWED_PACKAGES = {
    "lucide-react": "^0.469.0",
    "date-fns": "^4.1.0",
    "react-chartjs-2": "^5.3.0",
    "chart.js": "^4.4.7",
    "recharts": "^2.12.0",
    "react-router-dom": "^6.8.0",
    "uuid": "^9.0.0",
    "axios": "^1.3.0",
    "firebase": "^9.17.0",
    "react-hook-form": "^7.43.0",
    "zod": "^3.20.0",
    "@hookform/resolvers": "^2.9.0",
    "framer-motion": "^10.0.0",
    "react-icons": "^4.7.0",
    "clsx": "^1.2.0",
    "tailwind-merge": "^1.12.0",
    "@tanstack/react-query": "^5.0.0",
    "react-beautiful-dnd": "^13.1.1",
    "@google/generative-ai": "^0.21.0",
}

# Model descriptors - Anthropic Claude models only
SUPPORTED_MODELS = {
    # Claude Sonnet 4.5 - Latest flagship model (best for coding and agents)
    "anthropic:claude-sonnet-4-5": {
        "provider": "anthropic",
        "name": "claude-sonnet-4-5-20250929",
        "max_output_tokens": 8192,
    },
    # Claude Haiku 4.5 - Fast and cost-effective
    "anthropic:claude-haiku-4-5": {
        "provider": "anthropic",
        "name": "claude-haiku-4-5-20251001",
        "max_output_tokens": 8192,
    },
    # Claude Opus 4.1 - Most capable for complex reasoning
    "anthropic:claude-opus-4-1": {
        "provider": "anthropic",
        "name": "claude-opus-4-1-20250805",
        "max_output_tokens": 8192,
    },
}
