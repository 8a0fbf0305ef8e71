# backend/wsgi.py
from delivereth import create_app

app = create_app()
