from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("inventory_core", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="salesorder",
            name="approved_at",
            field=models.DateTimeField(blank=True, null=True),
        ),
        migrations.AddField(
            model_name="purchaseorder",
            name="approved_at",
            field=models.DateTimeField(blank=True, null=True),
        ),
    ]
