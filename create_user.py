"""
create_user.py - Quick script to create a local demo account
Run this from your project root directory: python create_user.py
"""

import os

from app import create_app
from extensions import db
from models import User

EMAIL = os.environ.get('DEMO_EMAIL', 'demo@picblog.dev')
PASSWORD = os.environ.get('DEMO_PASSWORD', 'Demo@1234')

app = create_app(os.environ.get('FLASK_CONFIG', 'development'))

with app.app_context():
    db.create_all()

    existing = User.find_by_email(EMAIL)
    if existing:
        print("Account already exists!")
        print(f"   Email: {existing.email}")
    else:
        User.create_user(first_name='Demo', last_name='User', email=EMAIL, password=PASSWORD)

        print("Account created successfully!")
        print("-" * 50)
        print("Login credentials:")
        print(f"  Email: {EMAIL}")
        print(f"  Password: {PASSWORD}")
        print("-" * 50)

    all_users = User.query.all()
    print(f"\nTotal users in database: {len(all_users)}")
    for user in all_users:
        social = user.profile.social_auth if user.profile else '-'
        print(f"  - {user.email} ({social})")
