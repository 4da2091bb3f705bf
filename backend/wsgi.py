# backend/wsgi.py
from chopp import create_app

app = create_app()
