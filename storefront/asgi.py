"""
ASGI entrypoint: expose `app` pour uvicorn/gunicorn (`storefront.asgi:app`).
Toute la configuration est centralisée dans storefront.app.create_app.
"""

from storefront.app import create_app

app = create_app()
