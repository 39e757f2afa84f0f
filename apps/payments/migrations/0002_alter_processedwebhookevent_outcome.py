from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('payments', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='processedwebhookevent',
            name='outcome',
            field=models.CharField(choices=[('applied', 'Applied'), ('duplicate', 'Duplicate'), ('failed_recorded', 'Failure recorded'), ('ignored', 'Ignored'), ('conflict', 'Needs reconciliation')], default='ignored', max_length=20),
        ),
    ]
