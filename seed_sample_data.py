import datetime
from db import WorkoutRepository, CardioRepository, FoodLogRepository


def seed(
    db_path: str = "workout.db",
    user_id: str = "local",
    today: datetime.date | None = None,
) -> bool:
    """Insert four weeks of sample training for ``user_id`` if none exists."""
    workouts = WorkoutRepository(db_path)
    if workouts.fetch_all("SELECT id FROM workouts WHERE user_id = ?;", (user_id,)):
        print("Database already contains workouts")
        return False

    today = today or datetime.date.today()
    start = today - datetime.timedelta(days=27)
    cardio = CardioRepository(db_path)
    food = FoodLogRepository(db_path)

    # bench climbs for two weeks then stalls at 70kg
    bench_weights = [60.0, 62.5, 65.0, 67.5, 70.0, 70.0, 70.0, 70.0, 70.0, 70.0, 70.0, 70.0]
    for i, weight in enumerate(bench_weights):
        day = start + datetime.timedelta(days=i * 2 + (1 if i >= 10 else 0))
        created = datetime.datetime.combine(day, datetime.time(18, 0)).isoformat()
        wid = workouts.create(
            user_id,
            created,
            intensity="vigorous" if i % 3 == 0 else "moderate",
            duration=60,
            date=day.isoformat(),
        )
        bench = workouts.add_exercise(wid, "Bench Press", "Chest, Triceps")
        for _ in range(3):
            workouts.add_set(bench, 8, weight)
        if i % 2 == 0:
            squat = workouts.add_exercise(wid, "Back Squat", "Legs")
            for reps in (5, 5, 6 + i // 4):
                workouts.add_set(squat, reps, 100.0)

    for offset in (3, 10, 17, 24):
        day = start + datetime.timedelta(days=offset)
        created = datetime.datetime.combine(day, datetime.time(7, 30)).isoformat()
        sid = cardio.create(user_id, created, "Morning Run", "moderate", 30)
        cardio.add_exercise(sid, "Running", "Legs, Cardio")

    for offset in range(28):
        if offset in (9, 20):
            continue
        day = start + datetime.timedelta(days=offset)
        created = datetime.datetime.combine(day, datetime.time(12, 0)).isoformat()
        food.log(user_id, created, 650 + (offset % 4) * 50, "Lunch")

    print("Seed data inserted")
    return True


if __name__ == "__main__":
    seed()
