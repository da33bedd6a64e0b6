# backend/wsgi.py
from manuerp import create_app

app = create_app()
