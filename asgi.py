"""
asgi.py -- ASGI entry point for Assure Health.

Run with:  uvicorn asgi:app --reload
           python asgi.py
"""

from api.main import app

if __name__ == "__main__":
    import uvicorn

    from core.config import get_settings

    uvicorn.run("asgi:app", host="0.0.0.0", port=get_settings().port)
