"""Hand-built minimal React + TypeScript + Vite project."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from buildspace.schemas import ErrorKind, ExecutionResult


logger = logging.getLogger(__name__)

PINNED_DEPENDENCIES = {
    "react": "18.3.1",
    "react-dom": "18.3.1",
}

PINNED_DEV_DEPENDENCIES = {
    "@types/react": "18.3.12",
    "@types/react-dom": "18.3.1",
    "@vitejs/plugin-react": "4.3.3",
    "typescript": "5.6.3",
    "vite": "5.4.10",
}

SCRIPTS = {
    "dev": "vite",
    "build": "vite build",
    "lint": "tsc --noEmit",
    "preview": "vite preview",
}


def _package_name(project_name: str) -> str:
    name = re.sub(r"[^a-z0-9._-]+", "-", Path(project_name).name.lower()).strip("-._")
    return name or "app"


def build_manifest(project_name: str) -> dict:
    return {
        "name": _package_name(project_name),
        "private": True,
        "version": "0.0.0",
        "type": "module",
        "scripts": dict(SCRIPTS),
        "dependencies": dict(PINNED_DEPENDENCIES),
        "devDependencies": dict(PINNED_DEV_DEPENDENCIES),
    }


INDEX_HTML = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{title}</title>
  </head>
  <body>
    <div id="root"></div>
    <script type="module" src="/src/main.tsx"></script>
  </body>
</html>
"""

MAIN_TSX = """import { StrictMode } from 'react'
import { createRoot } from 'react-dom/client'
import './index.css'
import App from './App'

createRoot(document.getElementById('root')!).render(
  <StrictMode>
    <App />
  </StrictMode>,
)
"""

APP_TSX = """import { useState } from 'react'

function App() {
  const [count, setCount] = useState(0)

  return (
    <main className="app">
      <h1>{title}</h1>
      <button onClick={() => setCount((c) => c + 1)}>count is {count}</button>
    </main>
  )
}

export default App
"""

INDEX_CSS = """:root {
  font-family: system-ui, Avenir, Helvetica, Arial, sans-serif;
  line-height: 1.5;
  color-scheme: light dark;
}

body {
  margin: 0;
  min-height: 100vh;
  display: flex;
  place-items: center;
  justify-content: center;
}

.app {
  text-align: center;
}
"""

VITE_CONFIG = """import { defineConfig } from 'vite'
import react from '@vitejs/plugin-react'

export default defineConfig({
  plugins: [react()],
  server: {
    port: 3000,
    host: '0.0.0.0'
  }
})
"""

TSCONFIG = {
    "compilerOptions": {
        "target": "ES2020",
        "useDefineForClassFields": True,
        "lib": ["ES2020", "DOM", "DOM.Iterable"],
        "module": "ESNext",
        "skipLibCheck": True,
        "moduleResolution": "bundler",
        "allowImportingTsExtensions": True,
        "isolatedModules": True,
        "noEmit": True,
        "jsx": "react-jsx",
        "strict": True,
    },
    "include": ["src"],
}


def project_files(project_name: str) -> dict[str, str]:
    """Relative path -> content for every synthesized file."""
    title = Path(project_name).name
    return {
        "package.json": json.dumps(build_manifest(project_name), indent=2) + "\n",
        "index.html": INDEX_HTML.replace("{title}", title),
        "src/main.tsx": MAIN_TSX,
        "src/App.tsx": APP_TSX.replace("{title}", title),
        "src/index.css": INDEX_CSS,
        "vite.config.ts": VITE_CONFIG,
        "tsconfig.json": json.dumps(TSCONFIG, indent=2) + "\n",
    }


def synthesize_project(project_dir: Path) -> ExecutionResult:
    """Write a minimal buildable project into project_dir."""
    try:
        for rel_path, content in project_files(project_dir.name).items():
            target = project_dir / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to synthesize project in {project_dir}: {e}")
        return ExecutionResult(
            output="",
            error=f"Failed to synthesize project: {e}",
            exit_code=1,
            error_kind=ErrorKind.EXECUTION_FAILURE,
        )

    logger.info(f"Synthesized minimal project in {project_dir}")
    return ExecutionResult(
        output=f"Created minimal React + TypeScript project in {project_dir.name}",
        exit_code=0,
    )
