# backend/wsgi.py
from storeapi import create_app

app = create_app()
