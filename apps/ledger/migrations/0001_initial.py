import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='UserTierRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_ref', models.CharField(max_length=128, unique=True)),
                ('tier', models.CharField(choices=[('regular', 'Regular Tier'), ('elite', 'Elite Tier'), ('god', 'God Mode')], max_length=16)),
                ('cumulative_spend_minor', models.BigIntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ('currency', models.CharField(default='usd', max_length=3)),
                ('serial_number', models.CharField(editable=False, max_length=32, unique=True)),
                ('display_name', models.CharField(blank=True, max_length=150)),
                ('email', models.EmailField(blank=True, max_length=255)),
                ('last_payment_intent_id', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField()),
            ],
            options={
                'db_table': 'user_tier_records',
                'ordering': ['-cumulative_spend_minor', 'updated_at'],
                'indexes': [
                    models.Index(fields=['tier'], name='user_tier_tier_idx'),
                    models.Index(fields=['-cumulative_spend_minor', 'updated_at'], name='user_tier_spend_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='LeaderboardEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_ref', models.CharField(max_length=128, unique=True)),
                ('display_name', models.CharField(blank=True, max_length=150)),
                ('tier', models.CharField(choices=[('regular', 'Regular Tier'), ('elite', 'Elite Tier'), ('god', 'God Mode')], max_length=16)),
                ('cumulative_spend_minor', models.BigIntegerField(default=0)),
                ('updated_at', models.DateTimeField()),
                ('record', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='leaderboard_entry', to='ledger.usertierrecord')),
            ],
            options={
                'verbose_name_plural': 'leaderboard entries',
                'db_table': 'leaderboard_entries',
                'ordering': ['-cumulative_spend_minor', 'updated_at', 'user_ref'],
                'indexes': [
                    models.Index(fields=['-cumulative_spend_minor', 'updated_at', 'user_ref'], name='leaderboard_rank_idx'),
                ],
            },
        ),
    ]
