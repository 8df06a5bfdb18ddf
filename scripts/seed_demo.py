"""Seed the database with a demo movie, show and user.

Run from the project root:
python scripts/seed_demo.py
"""
from datetime import datetime, timedelta

from cinebook.database.database import SessionLocal, Base, engine
from cinebook.database import models


def seed():
    # ensure tables exist
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        existing = db.query(models.Show).count()
        if existing:
            print(f"DB already has {existing} show(s); skipping seeding.")
            return

        movie = models.Movie(title="The Great Adventure", overview="An epic journey.", runtime=120)
        db.add(movie)
        db.flush()

        tomorrow = (datetime.utcnow() + timedelta(days=1)).replace(hour=19, minute=0, second=0, microsecond=0)
        for offset in (0, 3):
            db.add(models.Show(
                movie_id=movie.id,
                show_datetime=tomorrow + timedelta(hours=offset),
                show_price=250.0,
                occupied_seats={},
            ))

        db.add(models.User(id="user_demo", email="demo.user@gmail.com", name="Demo User"))
        db.commit()
        print("Seeded demo movie, shows and user successfully.")
    finally:
        db.close()


if __name__ == '__main__':
    seed()
