from django.db import migrations

FLEET = [
    ("local", 15, 4),
    ("regional", 20, 5),
    ("international", 25, 6),
]


def seed_airplanes(apps, schema_editor):
    Airplane = apps.get_model("seating", "Airplane")

    for airplane_type, n_rows, seats_per_row in FLEET:
        Airplane.objects.get_or_create(
            type=airplane_type,
            defaults={"n_rows": n_rows, "seats_per_row": seats_per_row},
        )


class Migration(migrations.Migration):
    dependencies = [
        ("seating", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_airplanes, migrations.RunPython.noop),
    ]
