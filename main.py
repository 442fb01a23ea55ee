"""
Roadside Assistance Backend
===========================
Entry point. Run with: uvicorn main:app --reload

Seed the provider roster first (``python seed.py``); with an empty roster
every request fails with 404 "no provider available".
"""

import uvicorn

from roadside.api.app import create_app
from roadside.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.reload)
