"""ASGI entrypoint for the Insights API.

Run with: uvicorn main:app --reload (from apps/api, with python/ on the path
or the package installed).

The instance lives here rather than in insights.app so that importing the
app factory never reads settings or builds middleware.
"""

from insights.app import create_app

app = create_app()

__all__ = ["app"]
