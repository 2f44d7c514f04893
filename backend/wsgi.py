# backend/wsgi.py
from phtrade import create_app

app = create_app()
