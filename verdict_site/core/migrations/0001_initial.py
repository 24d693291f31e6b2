# Initial schema for rooms, participants, conclusions and chat sessions

import core.models
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Room',
            fields=[
                ('id', models.CharField(default=core.models.new_opaque_id, editable=False, max_length=36, primary_key=True, serialize=False)),
                ('guiding_question', models.TextField()),
                ('password', models.CharField(max_length=128)),
                ('creator_user_id', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('active', 'Active'), ('comparing', 'Comparing'), ('completed', 'Completed')], default='active', max_length=16)),
                ('final_verdict', models.TextField(blank=True, null=True)),
                ('comparison_session_id', models.CharField(blank=True, max_length=36, null=True)),
                ('comparison_started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'ordering': ('-created_at',),
            },
        ),
        migrations.CreateModel(
            name='Participant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.PositiveIntegerField()),
                ('username', models.CharField(max_length=150)),
                ('position', models.PositiveSmallIntegerField()),
                ('has_submitted', models.BooleanField(default=False)),
                ('submitted_at', models.DateTimeField(blank=True, null=True)),
                ('joined_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('room', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='participants', to='core.room')),
            ],
            options={
                'ordering': ('room_id', 'position'),
            },
        ),
        migrations.CreateModel(
            name='Conclusion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.PositiveIntegerField()),
                ('content', models.TextField()),
                ('submitted_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('room', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='conclusions', to='core.room')),
            ],
            options={
                'ordering': ('submitted_at', 'id'),
            },
        ),
        migrations.CreateModel(
            name='ChatSession',
            fields=[
                ('id', models.CharField(default=core.models.new_opaque_id, editable=False, max_length=36, primary_key=True, serialize=False)),
                ('room_id', models.CharField(db_index=True, max_length=36)),
                ('user_id', models.PositiveIntegerField()),
                ('status', models.CharField(choices=[('active', 'Active'), ('concluded', 'Concluded')], default='active', max_length=16)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'ordering': ('room_id', 'user_id'),
            },
        ),
        migrations.CreateModel(
            name='ChatMessage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('user', 'User'), ('assistant', 'Assistant')], max_length=16)),
                ('content', models.TextField()),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('session', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='core.chatsession')),
            ],
            options={
                'ordering': ('created_at', 'id'),
            },
        ),
        migrations.AddConstraint(
            model_name='participant',
            constraint=models.UniqueConstraint(fields=('room', 'user_id'), name='unique_participant_per_room'),
        ),
        migrations.AddConstraint(
            model_name='participant',
            constraint=models.UniqueConstraint(fields=('room', 'position'), name='unique_participant_position'),
        ),
        migrations.AddConstraint(
            model_name='participant',
            constraint=models.CheckConstraint(condition=models.Q(('position__lt', 2)), name='participant_position_below_capacity'),
        ),
        migrations.AddConstraint(
            model_name='conclusion',
            constraint=models.UniqueConstraint(fields=('room', 'user_id'), name='unique_conclusion_per_user'),
        ),
        migrations.AddConstraint(
            model_name='chatsession',
            constraint=models.UniqueConstraint(fields=('room_id', 'user_id'), name='unique_chat_session_per_user'),
        ),
    ]
