# backend/wsgi.py
from cashbox import create_app

app = create_app()
