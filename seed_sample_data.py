import logging

from db import ExerciseTemplateRepository, MuscleGroupRepository

logger = logging.getLogger(__name__)

MUSCLE_GROUPS = [
    "Chest",
    "Back",
    "Shoulders",
    "Biceps",
    "Triceps",
    "Legs",
    "Abs",
    "Forearms",
]

# (name, primary group, secondary group, description, requires weight)
EXERCISE_TEMPLATES = [
    ("Bench Press", "Chest", "Triceps", "Lie on a flat bench and press the weight upward", True),
    ("Incline Bench Press", "Chest", "Shoulders", "Lie on an inclined bench and press the weight upward", True),
    ("Dumbbell Fly", "Chest", None, "Bring dumbbells together in an arc while lying on a bench", True),
    ("Push-Up", "Chest", "Triceps", "Standard push-up exercise", False),
    ("Deadlift", "Back", None, "Lift a barbell from the ground to a standing position", True),
    ("Pull-Up", "Back", "Biceps", "Pull your body upward by gripping an overhead bar", False),
    ("Barbell Row", "Back", "Biceps", "Bend over and row a barbell toward your lower chest", True),
    ("Lat Pulldown", "Back", "Biceps", "Pull a bar down to your chest while seated at a machine", True),
    ("Overhead Press", "Shoulders", "Triceps", "Press a barbell or dumbbells overhead while standing", True),
    ("Lateral Raise", "Shoulders", None, "Raise weights out to your sides with a slight bend in the elbows", True),
    ("Barbell Curl", "Biceps", "Forearms", "Curl a barbell from a standing position", True),
    ("Hammer Curl", "Biceps", "Forearms", "Curl dumbbells with a neutral grip", True),
    ("Triceps Pushdown", "Triceps", None, "Push a bar or rope down using a high cable pulley", True),
    ("Skullcrusher", "Triceps", None, "Lower a barbell to your forehead while lying on a bench", True),
    ("Squat", "Legs", None, "Bend your knees and lower your body while keeping the back straight", True),
    ("Leg Press", "Legs", None, "Push a weighted platform away from you using your legs", True),
    ("Romanian Deadlift", "Legs", None, "Deadlift variation that targets the hamstrings", True),
    ("Crunch", "Abs", None, "Lie on your back and curl your shoulders toward your hips", False),
    ("Plank", "Abs", None, "Hold a push-up position with your body in a straight line", False),
    ("Cable Crunch", "Abs", None, "Kneel in front of a cable machine and crunch downward", True),
]


def seed(db_path: str = "gym.db") -> int:
    """Insert the default muscle groups and exercise templates.

    Existing rows are left alone. Returns the number of templates created.
    """
    groups = MuscleGroupRepository(db_path)
    templates = ExerciseTemplateRepository(db_path)
    ids = {name: groups.ensure(name) for name in MUSCLE_GROUPS}
    created = 0
    for name, primary, secondary, description, requires_weight in EXERCISE_TEMPLATES:
        if templates.fetch_by_name(name) is not None:
            continue
        templates.add(
            name,
            ids[primary],
            ids[secondary] if secondary else None,
            description,
            requires_weight,
        )
        created += 1
    logger.info("seeded %d exercise templates", created)
    return created


if __name__ == "__main__":
    print(f"Seed data inserted: {seed()} templates")
