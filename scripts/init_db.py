#!/usr/bin/env python3
"""
Create the database tables.
Usage: pip install -e . && DATABASE_URL=postgresql://... python scripts/init_db.py
"""
from app import models  # noqa: F401
from app.database import Base, engine


def main():
    Base.metadata.create_all(bind=engine)
    print(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    main()
