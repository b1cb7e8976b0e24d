"""Entry point for running repolens as a module.

Usage:
    python -m repolens [command] [options]

Example:
    python -m repolens analyze octocat/hello-world --output report.json
    python -m repolens serve --port 8080
"""

from repolens.cli import app

if __name__ == "__main__":
    app()
