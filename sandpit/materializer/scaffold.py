"""Runtime scaffold and placeholder templates."""

import json
import posixpath
import re

from sandpit.constants import BASE_DEPENDENCIES, TAILWIND_CDN

ENTRY_TEMPLATE = """import React from 'react';
import ReactDOM from 'react-dom/client';
import './index.css';
import App from './App';

const root = ReactDOM.createRoot(document.getElementById('root'));
root.render(
  <React.StrictMode>
    <App />
  </React.StrictMode>
);
"""

HTML_TEMPLATE = f"""<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>React App</title>
    <script src="{TAILWIND_CDN}"></script>
  </head>
  <body>
    <div id="root"></div>
  </body>
</html>
"""

STYLESHEET_TEMPLATE = """body {
  margin: 0;
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', 'Roboto', 'Oxygen',
    'Ubuntu', 'Cantarell', 'Fira Sans', 'Droid Sans', 'Helvetica Neue', sans-serif;
  -webkit-font-smoothing: antialiased;
  -moz-osx-font-smoothing: grayscale;
}
"""

APP_TEMPLATE = """import React from 'react';

function App() {
  return (
    <div className="min-h-screen flex items-center justify-center bg-gray-50">
      <h1 className="text-2xl font-semibold text-gray-700">Hello from your new app</h1>
    </div>
  );
}

export default App;
"""

COMPONENT_PLACEHOLDER = """import React from 'react';

const {name} = () => {{
  return (
    <div className="p-4 border-2 border-dashed border-gray-300 rounded-lg text-center text-gray-500">
      Placeholder Component: {label}
    </div>
  );
}};

export default {name};
"""

SVG_PLACEHOLDER = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="24" height="24" viewBox="0 0 24 24"></svg>\n'
)


def component_name(filename: str) -> str:
    """Turn a file stem into a valid, capitalized JS identifier."""
    stem = posixpath.splitext(filename)[0]
    words = re.split(r"[^A-Za-z0-9_$]+", stem)
    name = "".join(w[:1].upper() + w[1:] for w in words if w)
    if not name or name[0].isdigit():
        name = f"Component{name}"
    return name


def placeholder_for(path: str) -> str:
    """Content of a placeholder file, chosen by extension.

    Args:
        path: Canonical path of the missing file

    Returns:
        File content
    """
    filename = posixpath.basename(path)
    ext = posixpath.splitext(filename)[1].lower()

    if ext in (".js", ".jsx", ".ts", ".tsx"):
        name = component_name(filename)
        return COMPONENT_PLACEHOLDER.format(name=name, label=filename)
    if ext in (".css", ".scss", ".sass", ".less"):
        return f"/* Placeholder CSS file for {filename} */\n"
    if ext == ".svg":
        return SVG_PLACEHOLDER
    if ext == ".json":
        return "{}\n"
    return "placeholder\n"


def build_manifest(dependencies: dict[str, str]) -> str:
    """Render package.json for the runtime.

    Args:
        dependencies: Detected packages (runtime packages are always added)

    Returns:
        JSON text of the manifest
    """
    merged = dict(BASE_DEPENDENCIES)
    merged.update(dependencies)
    manifest = {
        "name": "react-app",
        "version": "0.1.0",
        "private": True,
        "main": "/src/index.js",
        "dependencies": dict(sorted(merged.items())),
    }
    return json.dumps(manifest, indent=2) + "\n"
