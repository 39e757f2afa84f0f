import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='PaymentIntentRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('intent_id', models.CharField(max_length=255, unique=True)),
                ('user_ref', models.CharField(db_index=True, max_length=128)),
                ('tier', models.CharField(max_length=16)),
                ('amount_minor', models.BigIntegerField(validators=[django.core.validators.MinValueValidator(0)])),
                ('currency', models.CharField(default='usd', max_length=3)),
                ('email', models.EmailField(blank=True, max_length=255)),
                ('username', models.CharField(blank=True, max_length=150)),
                ('status', models.CharField(choices=[('created', 'Created'), ('succeeded', 'Succeeded'), ('failed', 'Failed'), ('canceled', 'Canceled')], default='created', max_length=20)),
                ('last_gateway_status', models.CharField(blank=True, max_length=50)),
                ('failure_message', models.TextField(blank=True)),
                ('ledger_applied_at', models.DateTimeField(blank=True, null=True)),
                ('finalized_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'payment_intents',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user_ref', 'status'], name='intent_user_status_idx'),
                    models.Index(fields=['status', 'created_at'], name='intent_status_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ProcessedWebhookEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_id', models.CharField(max_length=255, unique=True)),
                ('event_type', models.CharField(max_length=100)),
                ('intent_id', models.CharField(blank=True, db_index=True, max_length=255)),
                ('outcome', models.CharField(choices=[('applied', 'Applied'), ('duplicate', 'Duplicate'), ('failed_recorded', 'Failure recorded'), ('ignored', 'Ignored')], default='ignored', max_length=20)),
                ('received_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'processed_webhook_events',
                'ordering': ['-received_at'],
            },
        ),
    ]
