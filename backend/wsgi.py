# backend/wsgi.py
from tokenapp import create_app

app = create_app()
