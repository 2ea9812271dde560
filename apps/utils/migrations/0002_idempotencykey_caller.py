from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("utils", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="idempotencykey",
            name="caller",
            field=models.CharField(blank=True, default="", max_length=64),
        ),
    ]
